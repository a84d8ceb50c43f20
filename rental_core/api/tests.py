import datetime
from decimal import Decimal

from django.contrib.auth.models import User
from rest_framework import status
from rest_framework.authtoken.models import Token
from rest_framework.test import APITestCase

from rentals.models import Booking, DriverMonthlyExpense, Expense, OutsourcedVehicle, Payment, Vehicle
from rentals.reports import XLSX_CONTENT_TYPE
from rentals.tests import make_booking, make_customer, make_driver, make_vehicle


class ApiTestCase(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="desk", password="p")
        self.client.force_authenticate(self.user)
        self.customer = make_customer()
        self.vehicle = make_vehicle()
        self.driver = make_driver()

    def booking_payload(self, **extra):
        payload = {
            "customer": self.customer.pk,
            "vehicle": self.vehicle.pk,
            "driver": self.driver.pk,
            "start_date": "2024-01-01",
            "end_date": "2024-01-03",
            "actual_duty_hours": "14",
            "mileage_start": 10000,
        }
        payload.update(extra)
        return payload


class AuthenticationTests(APITestCase):
    def test_requests_need_credentials(self):
        response = self.client.get("/api/bookings/")

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_token_login(self):
        User.objects.create_user(username="desk", password="pass-1234")

        response = self.client.post(
            "/api/auth/login-token/", {"username": "desk", "password": "pass-1234"}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["token"], Token.objects.get(user__username="desk").key)


class BookingApiTests(ApiTestCase):
    def test_create_returns_settled_booking(self):
        response = self.client.post(
            "/api/bookings/", self.booking_payload(total_amount="1", booking_number="X1"), format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        data = response.data
        self.assertEqual(data["booking_number"], "BK000001")
        self.assertEqual(data["total_days"], 3)
        self.assertEqual(data["total_amount"], Decimal("9400.00"))
        self.assertEqual(data["customer_name"], "Ali Raza")
        self.assertEqual(data["driver_charges"]["overtime_amount"], Decimal("400.00"))
        self.assertEqual(data["driver_charges"]["total_amount"], Decimal("3400.00"))
        self.assertEqual(data["tax_deduction"]["amount"], Decimal("0.00"))
        self.assertEqual(data["payment"]["status"], Booking.PAYMENT_UNPAID)
        self.assertEqual(data["mileage"], {"start": 10000, "end": None, "total": 0})
        self.assertNotIn("vendor_charges", data)

        self.vehicle.refresh_from_db()
        self.assertEqual(self.vehicle.status, Vehicle.STATUS_BOOKED)

    def test_vendor_charges_included_for_outsourced_vehicle(self):
        vehicle = make_vehicle(
            "LEB-4500", vehicle_type=Vehicle.TYPE_OUTSOURCED_IN, daily_vendor_rate=Decimal("1500")
        )

        response = self.client.post(
            "/api/bookings/", self.booking_payload(vehicle=vehicle.pk, driver=None), format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["vendor_charges"]["total_amount"], Decimal("4500.00"))
        self.assertEqual(response.data["total_amount"], Decimal("6000.00"))

    def test_invalid_dates_return_validation_body(self):
        response = self.client.post(
            "/api/bookings/", self.booking_payload(end_date="2023-12-30"), format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["message"], "Validation failed")
        self.assertIn("end_date", response.data["errors"])
        self.assertEqual(Booking.objects.count(), 0)

    def test_serializer_errors_share_the_body(self):
        response = self.client.post(
            "/api/bookings/", self.booking_payload(customer=9999), format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data["message"], "Validation failed")
        self.assertIn("customer", response.data["errors"])

    def test_quote_does_not_save(self):
        response = self.client.post(
            "/api/bookings/quote/",
            {
                "vehicle": self.vehicle.pk,
                "driver": self.driver.pk,
                "start_date": "2024-01-01",
                "end_date": "2024-01-03",
                "actual_duty_hours": "14",
                "tax_deduction_percentage": "10",
            },
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["final_amount"], Decimal("8800.00"))
        self.assertEqual(response.data["tax_deduction"]["amount"], Decimal("600.00"))
        self.assertNotIn("vendor_charges", response.data)
        self.assertEqual(Booking.objects.count(), 0)

    def test_quote_without_vehicle(self):
        response = self.client.post(
            "/api/bookings/quote/", {"start_date": "2024-01-01", "end_date": "2024-01-02"}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("vehicle", response.data["errors"])

    def test_list_filters(self):
        make_booking(self.customer, self.vehicle)
        cancelled = make_booking(make_customer("Sara Ahmed", cnic="1"), make_vehicle("LEC-1111"))
        cancelled.cancel()

        response = self.client.get("/api/bookings/", {"status": "cancelled"})
        self.assertEqual([row["id"] for row in response.data], [cancelled.pk])

        response = self.client.get("/api/bookings/", {"search": "sara"})
        self.assertEqual([row["id"] for row in response.data], [cancelled.pk])

    def test_complete_and_cancel(self):
        booking = make_booking(self.customer, self.vehicle, driver=self.driver)

        response = self.client.patch(
            f"/api/bookings/{booking.pk}/complete/",
            {
                "actual_return_date": "2024-01-03",
                "end_mileage": 10500,
                "expenses": {"fuel": "1200", "toll": "250"},
                "driver_allowance": {"food_nights": "1"},
            },
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["status"], Booking.STATUS_COMPLETED)
        self.assertEqual(response.data["expenses"]["total"], Decimal("1450.00"))
        self.assertEqual(response.data["driver_allowance"]["food_amount"], Decimal("500.00"))
        self.assertEqual(response.data["mileage"]["total"], 500)
        self.vehicle.refresh_from_db()
        self.assertEqual(self.vehicle.status, Vehicle.STATUS_AVAILABLE)
        self.assertEqual(self.vehicle.mileage, 10500)

        response = self.client.patch(f"/api/bookings/{booking.pk}/cancel/", format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("status", response.data["errors"])

    def test_status_edit_keeps_vehicle_in_step(self):
        booking = make_booking(self.customer, self.vehicle)

        response = self.client.patch(f"/api/bookings/{booking.pk}/", {"status": "cancelled"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.vehicle.refresh_from_db()
        self.assertEqual(self.vehicle.status, Vehicle.STATUS_AVAILABLE)

        response = self.client.patch(f"/api/bookings/{booking.pk}/", {"status": "completed"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("status", response.data["errors"])
        booking.refresh_from_db()
        self.assertEqual(booking.status, Booking.STATUS_CANCELLED)

    def test_complete_rejects_fractional_nights(self):
        booking = make_booking(self.customer, self.vehicle, driver=self.driver)

        response = self.client.patch(
            f"/api/bookings/{booking.pk}/complete/", {"driver_allowance": {"food_nights": "2.5"}}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("driver_allowance", response.data["errors"])

    def test_bookings_by_customer_and_driver(self):
        other = make_customer("Sara Ahmed", cnic="35202-0000000-2")
        own = make_booking(self.customer, self.vehicle, driver=self.driver)
        theirs = make_booking(other, make_vehicle("LEC-1111"))

        response = self.client.get("/api/bookings/", {"customer": other.pk})
        self.assertEqual([row["id"] for row in response.data], [theirs.pk])

        response = self.client.get("/api/bookings/", {"driver": self.driver.pk, "vehicle": self.vehicle.pk})
        self.assertEqual([row["id"] for row in response.data], [own.pk])

        response = self.client.get(f"/api/customers/{other.pk}/bookings/")
        self.assertEqual([row["booking_number"] for row in response.data], [theirs.booking_number])

        response = self.client.get(f"/api/drivers/{self.driver.pk}/trips/")
        self.assertEqual([row["id"] for row in response.data], [own.pk])

        response = self.client.get("/api/bookings/", {"customer": "abc"})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_payment_and_receivable(self):
        booking = make_booking(self.customer, self.vehicle)

        response = self.client.patch(
            f"/api/bookings/{booking.pk}/payment/",
            {"received_amount": "2000", "tax_deduction_percentage": "5"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["payment"], {
            "total_amount": Decimal("5700.00"),
            "received_amount": Decimal("2000.00"),
            "balance_amount": Decimal("3700.00"),
            "status": Booking.PAYMENT_PARTIAL,
        })

        response = self.client.post(f"/api/bookings/{booking.pk}/receivable/", format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["amount"], Decimal("5700.00"))
        self.assertEqual(response.data["paid_amount"], Decimal("2000.00"))
        self.assertEqual(response.data["booking_number"], "BK000001")

    def test_delete_releases_vehicle(self):
        booking = make_booking(self.customer, self.vehicle)

        response = self.client.delete(f"/api/bookings/{booking.pk}/")

        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.vehicle.refresh_from_db()
        self.assertEqual(self.vehicle.status, Vehicle.STATUS_AVAILABLE)

    def test_customer_with_bookings_cannot_be_deleted(self):
        make_booking(self.customer, self.vehicle)

        response = self.client.delete(f"/api/customers/{self.customer.pk}/")

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)


class LedgerApiTests(ApiTestCase):
    def test_record_instalments_and_summaries(self):
        payment = Payment.objects.create(
            payment_type=Payment.TYPE_RECEIVABLE, category=Payment.CATEGORY_OTHER,
            description="Damage claim", amount=Decimal("5000"),
        )
        Payment.objects.create(
            payment_type=Payment.TYPE_PAYABLE, category=Payment.CATEGORY_VENDOR,
            description="Vendor invoice", amount=Decimal("800"),
        )

        response = self.client.patch(
            f"/api/payments/{payment.pk}/record/", {"paid_amount": "1500", "reference_number": "R-1"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["balance_amount"], Decimal("3500.00"))
        self.assertEqual(response.data["status"], Payment.STATUS_PENDING)

        response = self.client.patch(f"/api/payments/{payment.pk}/record/", {"paid_amount": "0"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("paid_amount", response.data["errors"])

        response = self.client.get("/api/payments/summary/receivables/")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["count"], 1)
        self.assertEqual(response.data["outstanding_balance"], Decimal("3500.00"))

        response = self.client.get("/api/payments/summary/payables/")
        self.assertEqual(response.data["total_amount"], Decimal("800.00"))
        self.assertEqual(response.data["by_status"][0]["status"], Payment.STATUS_PENDING)

    def test_payment_balance_is_derived(self):
        response = self.client.post(
            "/api/payments/",
            {
                "payment_type": Payment.TYPE_PAYABLE,
                "category": Payment.CATEGORY_DRIVER_SALARY,
                "description": "January salary",
                "amount": "30000",
                "paid_amount": "10000",
                "balance_amount": "1",
            },
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["balance_amount"], Decimal("20000.00"))

    def test_outsourced_vehicle_payment(self):
        vehicle = OutsourcedVehicle.objects.create(
            registration_number="LED-7788", make="Honda", model="City", year=2022,
            vendor_name="Rent Hub", daily_rate=Decimal("3000"),
            contract_start_date=datetime.date(2024, 1, 1), total_payable=Decimal("30000"),
        )

        response = self.client.patch(
            f"/api/outsourced-vehicles/{vehicle.pk}/payment/", {"paid_amount": "10000"}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["balance_amount"], Decimal("20000.00"))

    def test_expense_review(self):
        expense = Expense.objects.create(
            category=Expense.CATEGORY_TOLL, description="Motorway", amount=Decimal("450"),
            date=datetime.date(2024, 1, 2),
        )

        response = self.client.patch(f"/api/expenses/{expense.pk}/approve/", format="json")
        self.assertEqual(response.data["status"], Expense.STATUS_APPROVED)
        self.assertEqual(response.data["approved_by"], "desk")

        response = self.client.patch(f"/api/expenses/{expense.pk}/reject/", {"reason": "Duplicate"}, format="json")
        self.assertEqual(response.data["status"], Expense.STATUS_REJECTED)
        self.assertEqual(response.data["notes"], "Duplicate")

        response = self.client.get("/api/expenses/", {"status": "approved"})
        self.assertEqual(response.data, [])


class FleetApiTests(ApiTestCase):
    def test_company_customer_needs_registration(self):
        response = self.client.post(
            "/api/customers/",
            {"customer_type": "company", "name": "Acme Motors", "phone": "042-111"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("company_registration", response.data["errors"])

    def test_vehicle_status_and_maintenance(self):
        response = self.client.patch(
            f"/api/vehicles/{self.vehicle.pk}/status/", {"status": "under_maintenance"}, format="json"
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["status"], Vehicle.STATUS_MAINTENANCE)

        response = self.client.patch(f"/api/vehicles/{self.vehicle.pk}/status/", {"status": "sold"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(
            f"/api/vehicles/{self.vehicle.pk}/maintenance/",
            {"date": "2024-02-01", "description": "Oil change", "cost": "4500"},
            format="json",
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(self.vehicle.total_maintenance_cost, Decimal("4500.00"))

    def test_driver_monthly_expense_is_one_per_month(self):
        url = f"/api/drivers/{self.driver.pk}/monthly-expenses/"

        response = self.client.post(url, {"month": "2024-03-10", "food_allowance_nights": 2}, format="json")
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data["month"], "2024-03-01")
        self.assertEqual(response.data["total_amount"], Decimal("1000.00"))

        response = self.client.post(url, {"month": "2024-03-25", "overtime_hours": "3"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(DriverMonthlyExpense.objects.filter(driver=self.driver).count(), 1)
        self.assertEqual(response.data["overtime_amount"], Decimal("600.00"))

        response = self.client.get(url)
        self.assertEqual(len(response.data), 1)


class DashboardAndReportApiTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.booking = make_booking(self.customer, self.vehicle, received_amount=Decimal("1000"))

    def test_dashboard_endpoints(self):
        summary = self.client.get("/api/dashboard/summary/")
        chart = self.client.get("/api/dashboard/revenue-chart/", {"months": "2"})
        recent = self.client.get("/api/dashboard/recent-activities/")
        top = self.client.get("/api/dashboard/top-customers/")
        balances = self.client.get("/api/customers/balances/")

        self.assertEqual(summary.data["total_trips"], 1)
        self.assertEqual(len(chart.data), 2)
        self.assertEqual(recent.data["recent_bookings"][0]["booking_number"], "BK000001")
        self.assertEqual(top.data[0]["name"], "Ali Raza")
        self.assertEqual(balances.data[0]["total_amount"], Decimal("6000.00"))

        bad = self.client.get("/api/dashboard/revenue-chart/", {"months": "x"})
        self.assertEqual(bad.status_code, status.HTTP_400_BAD_REQUEST)

    def test_report_download(self):
        response = self.client.get("/api/reports/monthly-rental/", {"customer": self.customer.pk})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response["Content-Type"], XLSX_CONTENT_TYPE)
        self.assertIn('filename="monthly-rental-report.xlsx"', response["Content-Disposition"])
        self.assertTrue(response.content.startswith(b"PK"))

    def test_analytics_reports(self):
        period = {"start_date": "2024-01-01", "end_date": "2024-01-31"}

        monthly = self.client.get("/api/reports/monthly/", period)
        vehicles = self.client.get("/api/reports/vehicles/", period)
        drivers = self.client.get("/api/reports/drivers/", period)
        financial = self.client.get("/api/reports/financial/", period)

        self.assertEqual(monthly.data["monthly_rentals"][0]["month"], "Jan 2024")
        self.assertEqual(monthly.data["monthly_rentals"][0]["own_fleet_revenue"], Decimal("6000.00"))
        self.assertEqual(vehicles.data["vehicle_performance"][0]["utilization_rate"], Decimal("9.68"))
        self.assertEqual(drivers.data["driver_performance"][0]["total_assignments"], 0)
        self.assertEqual(financial.data["financial_summary"]["total_revenue"], Decimal("6000.00"))

        backwards = self.client.get("/api/reports/financial/", {"start_date": "2024-02-01", "end_date": "2024-01-01"})
        self.assertEqual(backwards.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("end_date", backwards.data["errors"])

    def test_report_errors(self):
        self.assertEqual(self.client.get("/api/reports/fuel-cards/").status_code, status.HTTP_404_NOT_FOUND)

        response = self.client.get("/api/reports/vehicle-summary/", {"start_date": "01/02/2024"})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("start_date", response.data["errors"])
