import datetime
from decimal import Decimal
from io import BytesIO

from django.test import TestCase, override_settings
from django.utils import timezone
from openpyxl import load_workbook

from . import dashboard
from .models import Booking, Expense, Payment, Vehicle
from .reports import build_report, monthly_rental_report
from .tests import make_booking, make_customer, make_driver, make_vehicle


def _sheet(report):
    return load_workbook(BytesIO(report.to_bytes())).active


@override_settings(RENTAL_BUSINESS_NAME="Test Rentals")
class ReportWorkbookTests(TestCase):
    def setUp(self):
        self.customer = make_customer()
        self.vehicle = make_vehicle()
        self.driver = make_driver()
        self.booking = make_booking(
            self.customer,
            self.vehicle,
            driver=self.driver,
            received_amount=Decimal("5000"),
            mileage_end=10600,
        )

    def test_monthly_rental_layout(self):
        report = build_report("monthly-rental")
        sheet = _sheet(report)
        headers = [cell.value for cell in sheet[2]]

        self.assertEqual(sheet["A1"].value, "Test Rentals - Monthly Rental Report")
        self.assertEqual(headers, report.headers)
        self.assertEqual(sheet["A3"].value, "BK000001")
        self.assertEqual(sheet.cell(row=3, column=headers.index("Customer Name") + 1).value, "Ali Raza")
        self.assertEqual(sheet.cell(row=3, column=headers.index("Final Amount") + 1).value, 9000)
        self.assertEqual(sheet["A4"].value, "Total")
        self.assertEqual(sheet.cell(row=4, column=headers.index("Received Amount") + 1).value, 5000)
        self.assertEqual(sheet.freeze_panes, "A3")

    def test_monthly_rental_filters(self):
        other = make_vehicle("LEZ-0001")

        self.assertEqual(len(monthly_rental_report(vehicle=self.vehicle.pk).rows), 1)
        self.assertEqual(monthly_rental_report(vehicle=other.pk).rows, [])
        self.assertEqual(monthly_rental_report(start_date=datetime.date(2024, 2, 1)).rows, [])

        sheet = _sheet(monthly_rental_report(vehicle=other.pk))
        self.assertEqual(sheet.max_row, 2)

    def test_vehicle_summary_profit(self):
        self.vehicle.add_maintenance_log(datetime.date(2024, 1, 10), "Tyres", Decimal("1200"))

        report = build_report("vehicle-summary")
        row = dict(zip(report.headers, report.rows[0]))

        self.assertEqual(row["Registration Number"], "LEA-1234")
        self.assertEqual(row["Total Bookings"], 1)
        self.assertEqual(row["Total Revenue"], Decimal("5000.00"))
        self.assertEqual(row["Total Maintenance Cost"], Decimal("1200.00"))
        self.assertEqual(row["Profit"], Decimal("3800.00"))

    def test_driver_report_totals_allowances(self):
        self.booking.complete(driver_allowance={"food_nights": 2, "parking": "100"})

        report = build_report("driver-report")
        row = dict(zip(report.headers, report.rows[0]))

        self.assertEqual(row["Driver Name"], "Imran Khan")
        self.assertEqual(row["Total Trips"], 1)
        self.assertEqual(row["Food Allowance"], Decimal("1000.00"))
        self.assertEqual(row["Total Allowances"], Decimal("1100.00"))
        self.assertEqual(row["Driver Charges Billed"], Decimal("3000.00"))

    def test_income_expenses_skips_rejected(self):
        Expense.objects.create(
            category=Expense.CATEGORY_FUEL, description="Fuel", amount=Decimal("1000"),
            date=datetime.date(2024, 1, 2), status=Expense.STATUS_APPROVED,
        )
        Expense.objects.create(
            category=Expense.CATEGORY_OTHER, description="Car wash", amount=Decimal("500"),
            date=datetime.date(2024, 1, 2), status=Expense.STATUS_REJECTED,
        )

        report = build_report("income-expenses")

        self.assertEqual(report.rows, [[
            "2024-01", Decimal("5000.00"), 1, Decimal("1000.00"), Decimal("4000.00"), Decimal("80.00"),
        ]])

    def test_mileage_summary(self):
        report = build_report("mileage-summary")
        row = dict(zip(report.headers, report.rows[0]))

        self.assertEqual(row["Total Mileage"], 600)
        self.assertEqual(row["Duration (Days)"], 3)
        self.assertEqual(row["Mileage Per Day"], Decimal("200.00"))
        self.assertIsNone(report.totals)

    def test_unknown_report(self):
        with self.assertRaises(LookupError):
            build_report("fuel-cards")


class DashboardTests(TestCase):
    def setUp(self):
        self.today = timezone.localdate()
        self.customer = make_customer()
        self.vehicle = make_vehicle()
        make_vehicle("LEM-0002", status=Vehicle.STATUS_MAINTENANCE)
        self.booking = make_booking(self.customer, self.vehicle, received_amount=Decimal("2000"))

    def test_summary_figures(self):
        Payment.objects.create(
            payment_type=Payment.TYPE_RECEIVABLE, category=Payment.CATEGORY_OTHER,
            description="Damage claim", amount=Decimal("5000"), paid_amount=Decimal("1000"),
        )
        Payment.objects.create(
            payment_type=Payment.TYPE_PAYABLE, category=Payment.CATEGORY_VENDOR,
            description="Vendor invoice", amount=Decimal("800"),
        )
        Payment.objects.create(
            payment_type=Payment.TYPE_PAYABLE, category=Payment.CATEGORY_VENDOR,
            description="Settled invoice", amount=Decimal("300"), paid_amount=Decimal("300"),
        )
        Expense.objects.create(
            category=Expense.CATEGORY_FUEL, description="Fuel", amount=Decimal("700"), date=self.today,
        )
        Expense.objects.create(
            category=Expense.CATEGORY_PARKING, description="Parking", amount=Decimal("150"), date=self.today,
        )

        summary = dashboard.dashboard_summary(today=self.today)

        self.assertEqual(summary["monthly_income"], Decimal("2000.00"))
        self.assertEqual(summary["total_trips"], 1)
        self.assertEqual(summary["outstanding_receivables"], Decimal("4000.00"))
        self.assertEqual(summary["outstanding_payables"], Decimal("800.00"))
        self.assertEqual(summary["fuel_toll_expenses"], [{"category": "Fuel", "total": Decimal("700.00")}])
        self.assertEqual(summary["driver_expenses"], [{"category": "Parking", "total": Decimal("150.00")}])
        self.assertEqual(
            summary["vehicle_status"],
            [{"status": "booked", "count": 1}, {"status": "under_maintenance", "count": 1}],
        )

    def test_unpaid_bookings_do_not_count_as_income(self):
        make_booking(self.customer, make_vehicle("LEN-0003"))

        self.assertEqual(dashboard.dashboard_summary(today=self.today)["monthly_income"], Decimal("2000.00"))

    def test_revenue_chart_ends_with_current_month(self):
        chart = dashboard.revenue_chart(months=3, today=self.today)

        self.assertEqual(len(chart), 3)
        self.assertEqual(chart[-1], {"month": self.today.strftime("%b %Y"), "revenue": Decimal("2000.00")})
        self.assertEqual(chart[0]["revenue"], Decimal("0.00"))

    def test_shift_month_crosses_years(self):
        self.assertEqual(dashboard.shift_month(datetime.date(2024, 1, 31), -1), datetime.date(2023, 12, 1))
        self.assertEqual(dashboard.shift_month(datetime.date(2024, 11, 5), 3), datetime.date(2025, 2, 1))

    def test_top_customers_and_recent_activity(self):
        big_spender = make_customer("Zara Sheikh", cnic="35202-2222222-2")
        make_booking(big_spender, make_vehicle("LEP-0004"), received_amount=Decimal("6000"))

        top = dashboard.top_customers(limit=5)
        activity = dashboard.recent_activities(limit=1)

        self.assertEqual([row["name"] for row in top], ["Zara Sheikh", "Ali Raza"])
        self.assertEqual(top[0]["total_revenue"], Decimal("6000.00"))
        self.assertEqual(len(activity["recent_bookings"]), 1)
        self.assertEqual(activity["recent_bookings"][0]["booking_number"], "BK000002")

    def test_customer_balances_use_the_ledger(self):
        payment = self.booking.sync_receivable()
        payment.record(Decimal("500"))

        balance = next(row for row in dashboard.customer_balances() if row["customer_id"] == self.customer.pk)

        self.assertEqual(balance["total_bookings"], 1)
        self.assertEqual(balance["total_amount"], Decimal("6000.00"))
        self.assertEqual(balance["paid_amount"], Decimal("2500.00"))
        self.assertEqual(balance["pending_amount"], Decimal("3500.00"))
        self.assertEqual(Booking.objects.get(pk=self.booking.pk).received_amount, Decimal("2000.00"))


class PeriodAnalyticsTests(TestCase):
    def setUp(self):
        self.start = datetime.date(2024, 1, 1)
        self.end = datetime.date(2024, 2, 29)
        customer = make_customer()
        self.driver = make_driver()
        make_booking(customer, make_vehicle(), driver=self.driver)
        make_booking(
            customer,
            make_vehicle(
                "LEO-5555", daily_rate="3000",
                vehicle_type=Vehicle.TYPE_OUTSOURCED_IN, daily_vendor_rate=Decimal("1800"),
            ),
            start_date=datetime.date(2024, 2, 10),
            end_date=datetime.date(2024, 2, 11),
        )
        make_booking(
            customer, make_vehicle("LEX-0001"),
            start_date=datetime.date(2024, 1, 5), end_date=datetime.date(2024, 1, 5),
        ).cancel()
        Expense.objects.create(
            category=Expense.CATEGORY_FUEL, description="Fuel", amount=Decimal("1000"),
            date=datetime.date(2024, 1, 2), status=Expense.STATUS_APPROVED,
        )
        Expense.objects.create(
            category=Expense.CATEGORY_OTHER, description="Car wash", amount=Decimal("500"),
            date=datetime.date(2024, 1, 2), status=Expense.STATUS_REJECTED,
        )
        Expense.objects.create(
            category=Expense.CATEGORY_PARKING, description="Airport parking", amount=Decimal("200"),
            date=datetime.date(2024, 2, 10), driver=self.driver,
        )

    def test_financial_summary_splits_fleet_revenue(self):
        summary = dashboard.financial_summary(self.start, self.end)

        self.assertEqual(summary["total_revenue"], Decimal("12000.00"))
        self.assertEqual(summary["total_expenses"], Decimal("1200.00"))
        self.assertEqual(summary["net_profit"], Decimal("10800.00"))
        self.assertEqual(summary["own_fleet_revenue"], Decimal("6000.00"))
        self.assertEqual(summary["outsourced_revenue"], Decimal("6000.00"))

    def test_monthly_report_groups_by_start_month(self):
        report = dashboard.monthly_report(self.start, self.end)

        self.assertEqual(report["monthly_rentals"], [
            {
                "month": "Jan 2024", "total_bookings": 1, "total_revenue": Decimal("6000.00"),
                "own_fleet_revenue": Decimal("6000.00"), "outsourced_revenue": Decimal("0.00"),
            },
            {
                "month": "Feb 2024", "total_bookings": 1, "total_revenue": Decimal("6000.00"),
                "own_fleet_revenue": Decimal("0.00"), "outsourced_revenue": Decimal("6000.00"),
            },
        ])
        self.assertEqual(report["financial_summary"]["net_profit"], Decimal("10800.00"))

    def test_vehicle_performance_utilization(self):
        rows = {row["registration_number"]: row for row in dashboard.vehicle_performance(self.start, self.end)}

        self.assertEqual(rows["LEA-1234"]["total_bookings"], 1)
        self.assertEqual(rows["LEA-1234"]["booked_days"], 3)
        self.assertEqual(rows["LEA-1234"]["utilization_rate"], Decimal("5.00"))
        self.assertEqual(rows["LEO-5555"]["utilization_rate"], Decimal("3.33"))
        self.assertEqual(rows["LEX-0001"]["total_bookings"], 0)
        self.assertEqual(rows["LEX-0001"]["total_revenue"], Decimal("0.00"))

    def test_driver_performance(self):
        rows = dashboard.driver_performance(self.start, self.end)

        self.assertEqual(rows, [{
            "driver_id": self.driver.pk,
            "name": "Imran Khan",
            "status": self.driver.status,
            "total_assignments": 1,
            "driver_charges": Decimal("3000.00"),
            "allowances": Decimal("0.00"),
            "total_expenses": Decimal("200.00"),
        }])

    def test_period_defaults_to_year_to_date(self):
        today = datetime.date(2024, 3, 15)

        self.assertEqual(dashboard.report_period(today=today), (self.start, today))
        self.assertEqual(
            dashboard.report_period(end_date=self.end, today=today), (self.start, self.end)
        )
