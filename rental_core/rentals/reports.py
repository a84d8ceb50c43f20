"""Spreadsheet reports built from settled bookings, expenses and the fleet."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from io import BytesIO
import logging
from typing import Optional

from django.conf import settings
from django.db.models import Count, Q, Sum
from django.db.models.functions import TruncMonth
from openpyxl import Workbook

from .excel_formatting import apply_report_styling
from .models import Booking, Driver, Expense, MaintenanceLog, Vehicle
from .settlement import DECIMAL_ZERO, round_currency

logger = logging.getLogger(__name__)

XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
DATE_FORMAT = "%d/%m/%Y"


@dataclass
class Report:
    title: str
    sheet_name: str
    filename: str
    headers: list
    rows: list = field(default_factory=list)
    money_columns: tuple = ()
    totals: Optional[list] = None

    def to_workbook(self) -> Workbook:
        workbook = Workbook()
        worksheet = workbook.active
        worksheet.title = self.sheet_name
        worksheet.append([f"{settings.RENTAL_BUSINESS_NAME} - {self.title}"])
        worksheet.append(self.headers)
        for row in self.rows:
            worksheet.append(row)
        total_row_index = None
        if self.totals and self.rows:
            worksheet.append(self.totals)
            total_row_index = worksheet.max_row

        apply_report_styling(
            worksheet,
            headers=self.headers,
            header_row_index=2,
            title_row_index=1,
            money_columns=self.money_columns,
            total_row_index=total_row_index,
        )
        return workbook

    def to_bytes(self) -> bytes:
        output = BytesIO()
        self.to_workbook().save(output)
        return output.getvalue()


def _format_date(value):
    return value.strftime(DATE_FORMAT) if value else "N/A"


def _date_range(queryset, field_name, start_date=None, end_date=None):
    if start_date:
        queryset = queryset.filter(**{f"{field_name}__gte": start_date})
    if end_date:
        queryset = queryset.filter(**{f"{field_name}__lte": end_date})
    return queryset


def _totals_row(headers, rows, money_columns, label="Total"):
    totals = [""] * len(headers)
    totals[0] = label
    for name in money_columns:
        index = headers.index(name)
        totals[index] = round_currency(sum((row[index] or DECIMAL_ZERO) for row in rows))
    return totals


def monthly_rental_report(start_date=None, end_date=None, vehicle=None, customer=None) -> Report:
    bookings = _date_range(
        Booking.objects.select_related("customer", "vehicle", "outsourced_vehicle", "driver"),
        "start_date",
        start_date,
        end_date,
    )
    if vehicle:
        bookings = bookings.filter(vehicle_id=vehicle)
    if customer:
        bookings = bookings.filter(customer_id=customer)

    headers = [
        "Booking Number", "Customer Name", "Customer Type", "Vehicle", "Driver",
        "Start Date", "End Date", "Total Days", "Rent Per Day", "Total Rent",
        "Driver Charges", "Vendor Charges", "Tax Deduction", "Final Amount",
        "Received Amount", "Balance Amount", "Payment Status", "Status",
        "Rental Type", "Outstation",
    ]
    money_columns = (
        "Total Rent", "Driver Charges", "Tax Deduction", "Final Amount",
        "Received Amount", "Balance Amount",
    )
    rows = []
    for booking in bookings.order_by("-start_date", "-id"):
        if booking.vehicle_id:
            vehicle_label = booking.vehicle.registration_number
        elif booking.outsourced_vehicle_id:
            vehicle_label = booking.outsourced_vehicle.registration_number
        else:
            vehicle_label = "N/A"
        rows.append([
            booking.booking_number,
            booking.customer.name,
            booking.customer.get_customer_type_display(),
            vehicle_label,
            booking.driver.name if booking.driver_id else "N/A",
            _format_date(booking.start_date),
            _format_date(booking.end_date),
            booking.total_days,
            booking.rent_per_day,
            booking.total_rent,
            booking.driver_charges_total,
            booking.vendor_charges_total if booking.vendor_charges_total is not None else "",
            booking.tax_deduction_amount,
            booking.final_amount,
            booking.received_amount,
            booking.balance_amount,
            booking.payment_status,
            booking.status,
            booking.rental_type,
            "Yes" if booking.is_outstation else "No",
        ])

    return Report(
        title="Monthly Rental Report",
        sheet_name="Monthly Rental Report",
        filename="monthly-rental-report.xlsx",
        headers=headers,
        rows=rows,
        money_columns=money_columns + ("Rent Per Day", "Vendor Charges"),
        totals=_totals_row(headers, rows, money_columns),
    )


def vehicle_summary_report(start_date=None, end_date=None) -> Report:
    bookings = _date_range(Booking.objects.filter(vehicle__isnull=False), "start_date", start_date, end_date)
    booking_stats = {
        row["vehicle"]: row
        for row in bookings.values("vehicle").annotate(count=Count("id"), revenue=Sum("received_amount"))
    }
    maintenance = {
        row["vehicle"]: row["total"]
        for row in _date_range(MaintenanceLog.objects.all(), "date", start_date, end_date)
        .values("vehicle")
        .annotate(total=Sum("cost"))
    }

    headers = [
        "Registration Number", "Make", "Model", "Year", "Type", "Status",
        "Current Mileage", "Daily Rate", "Total Bookings", "Total Revenue",
        "Total Maintenance Cost", "Profit",
    ]
    money_columns = ("Total Revenue", "Total Maintenance Cost", "Profit")
    rows = []
    for vehicle in Vehicle.objects.order_by("registration_number"):
        stats = booking_stats.get(vehicle.pk, {})
        revenue = round_currency(stats.get("revenue") or DECIMAL_ZERO)
        maintenance_cost = round_currency(maintenance.get(vehicle.pk) or DECIMAL_ZERO)
        rows.append([
            vehicle.registration_number,
            vehicle.make,
            vehicle.model,
            vehicle.year,
            vehicle.vehicle_type,
            vehicle.get_status_display(),
            vehicle.mileage,
            vehicle.daily_rate,
            stats.get("count", 0),
            revenue,
            maintenance_cost,
            revenue - maintenance_cost,
        ])

    return Report(
        title="Vehicle Summary",
        sheet_name="Vehicle Summary",
        filename="vehicle-summary-report.xlsx",
        headers=headers,
        rows=rows,
        money_columns=money_columns + ("Daily Rate",),
        totals=_totals_row(headers, rows, money_columns),
    )


def driver_report(start_date=None, end_date=None) -> Report:
    trips = _date_range(Booking.objects.filter(driver__isnull=False), "start_date", start_date, end_date)
    trip_stats = {
        row["driver"]: row
        for row in trips.values("driver").annotate(
            trips=Count("id"),
            overtime_hours=Sum("allowance_overtime_hours"),
            overtime_amount=Sum("allowance_overtime_amount"),
            food=Sum("allowance_food_amount"),
            outstation=Sum("allowance_outstation_amount"),
            parking=Sum("allowance_parking"),
            driver_charges=Sum("driver_charges_total"),
        )
    }

    headers = [
        "Driver Name", "CNIC", "License Number", "Assigned Vehicle", "Status",
        "Total Trips", "Total Overtime Hours", "Overtime Amount", "Food Allowance",
        "Outstation Allowance", "Parking Allowance", "Total Allowances", "Driver Charges Billed",
    ]
    money_columns = (
        "Overtime Amount", "Food Allowance", "Outstation Allowance",
        "Parking Allowance", "Total Allowances", "Driver Charges Billed",
    )
    rows = []
    for driver in Driver.objects.select_related("assigned_vehicle").order_by("name"):
        stats = trip_stats.get(driver.pk, {})
        overtime = round_currency(stats.get("overtime_amount") or DECIMAL_ZERO)
        food = round_currency(stats.get("food") or DECIMAL_ZERO)
        outstation = round_currency(stats.get("outstation") or DECIMAL_ZERO)
        parking = round_currency(stats.get("parking") or DECIMAL_ZERO)
        rows.append([
            driver.name,
            driver.cnic,
            driver.license_number,
            driver.assigned_vehicle.registration_number if driver.assigned_vehicle_id else "None",
            driver.get_status_display(),
            stats.get("trips", 0),
            stats.get("overtime_hours") or Decimal("0"),
            overtime,
            food,
            outstation,
            parking,
            overtime + food + outstation + parking,
            round_currency(stats.get("driver_charges") or DECIMAL_ZERO),
        ])

    return Report(
        title="Driver Report",
        sheet_name="Driver Report",
        filename="driver-report.xlsx",
        headers=headers,
        rows=rows,
        money_columns=money_columns,
        totals=_totals_row(headers, rows, money_columns),
    )


def income_expenses_report(start_date=None, end_date=None) -> Report:
    income = {
        row["month"]: row
        for row in _date_range(Booking.objects.all(), "start_date", start_date, end_date)
        .annotate(month=TruncMonth("start_date"))
        .values("month")
        .annotate(income=Sum("received_amount"), bookings=Count("id"))
    }
    expenses = {
        row["month"]: row["total"]
        for row in _date_range(
            Expense.objects.exclude(status=Expense.STATUS_REJECTED), "date", start_date, end_date
        )
        .annotate(month=TruncMonth("date"))
        .values("month")
        .annotate(total=Sum("amount"))
    }

    headers = ["Month", "Total Income", "Total Bookings", "Total Expenses", "Net Profit", "Profit Margin %"]
    money_columns = ("Total Income", "Total Expenses", "Net Profit")
    rows = []
    for month in sorted(set(income) | set(expenses)):
        month_income = round_currency((income.get(month) or {}).get("income") or DECIMAL_ZERO)
        month_expenses = round_currency(expenses.get(month) or DECIMAL_ZERO)
        net = month_income - month_expenses
        margin = round_currency(net / month_income * 100) if month_income else DECIMAL_ZERO
        rows.append([
            month.strftime("%Y-%m"),
            month_income,
            (income.get(month) or {}).get("bookings", 0),
            month_expenses,
            net,
            margin,
        ])

    return Report(
        title="Income vs Expenses",
        sheet_name="Income vs Expenses",
        filename="income-expenses-report.xlsx",
        headers=headers,
        rows=rows,
        money_columns=money_columns,
        totals=_totals_row(headers, rows, money_columns),
    )


def mileage_summary_report(start_date=None, end_date=None) -> Report:
    bookings = _date_range(
        Booking.objects.select_related("vehicle", "customer"), "start_date", start_date, end_date
    )
    headers = [
        "Booking Number", "Vehicle", "Customer", "Start Date", "End Date",
        "Start Mileage", "End Mileage", "Total Mileage", "Duration (Days)", "Mileage Per Day",
    ]
    rows = []
    for booking in bookings.order_by("-start_date", "-id"):
        per_day = (
            round_currency(Decimal(booking.mileage_total) / booking.total_days)
            if booking.total_days > 0
            else DECIMAL_ZERO
        )
        rows.append([
            booking.booking_number,
            booking.vehicle.registration_number if booking.vehicle_id else "N/A",
            booking.customer.name,
            _format_date(booking.start_date),
            _format_date(booking.end_date),
            booking.mileage_start,
            booking.mileage_end if booking.mileage_end is not None else "N/A",
            booking.mileage_total,
            booking.total_days,
            per_day,
        ])

    return Report(
        title="Mileage Summary",
        sheet_name="Mileage Summary",
        filename="mileage-summary-report.xlsx",
        headers=headers,
        rows=rows,
    )


REPORT_BUILDERS = {
    "monthly-rental": monthly_rental_report,
    "vehicle-summary": vehicle_summary_report,
    "driver-report": driver_report,
    "income-expenses": income_expenses_report,
    "mileage-summary": mileage_summary_report,
}


def build_report(name, **filters) -> Report:
    try:
        builder = REPORT_BUILDERS[name]
    except KeyError:
        raise LookupError(f"Unknown report: {name}") from None
    report = builder(**filters)
    logger.info("Built %s report with %s rows", name, len(report.rows))
    return report
