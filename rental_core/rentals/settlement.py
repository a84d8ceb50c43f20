"""Booking settlement calculation.

Everything in this module is free of database access so it can be used for
quotes, for persisting a booking, and in tests without fixtures. Models turn
themselves into the rate/terms dataclasses below and copy the result back.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
import datetime
import math
from typing import Optional


DECIMAL_ZERO = Decimal("0.00")
SECONDS_PER_DAY = 86400

VEHICLE_COMPANY_OWNED = "Company-owned"
VEHICLE_OUTSOURCED_IN = "Outsourced-in"
VEHICLE_OUTSOURCED_OUT = "Outsourced-out"


def to_decimal(value, default="0") -> Decimal:
    if isinstance(value, Decimal):
        return value
    if value in (None, ""):
        return Decimal(default)
    try:
        return Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        return Decimal(default)


def round_currency(value) -> Decimal:
    return to_decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class VehicleRates:
    daily_rate: Decimal
    vehicle_type: str = VEHICLE_COMPANY_OWNED
    daily_vendor_rate: Optional[Decimal] = None

    @property
    def has_vendor_info(self) -> bool:
        return self.daily_vendor_rate is not None


@dataclass(frozen=True)
class DriverRates:
    local_daily_rate: Decimal = Decimal("1000")
    outstation_daily_rate: Decimal = Decimal("1500")
    overtime_threshold_hours: Decimal = Decimal("12")
    overtime_hourly_rate: Decimal = Decimal("200")


@dataclass(frozen=True)
class SettlementTerms:
    start_date: Optional[datetime.date]
    end_date: Optional[datetime.date]
    is_outstation: bool = False
    actual_duty_hours: Decimal = DECIMAL_ZERO
    mileage_start: int = 0
    mileage_end: Optional[int] = None
    tax_deduction_percentage: Decimal = DECIMAL_ZERO


@dataclass(frozen=True)
class DriverCharges:
    daily_rate: Decimal = DECIMAL_ZERO
    overtime_hours: Decimal = DECIMAL_ZERO
    overtime_amount: Decimal = DECIMAL_ZERO
    total_amount: Decimal = DECIMAL_ZERO

    def as_dict(self) -> dict:
        return {
            "daily_rate": self.daily_rate,
            "overtime_hours": self.overtime_hours,
            "overtime_amount": self.overtime_amount,
            "total_amount": self.total_amount,
        }


@dataclass(frozen=True)
class VendorCharges:
    daily_rate: Decimal
    total_amount: Decimal

    def as_dict(self) -> dict:
        return {"daily_rate": self.daily_rate, "total_amount": self.total_amount}


@dataclass(frozen=True)
class SettlementResult:
    total_days: int
    rent_per_day: Decimal
    total_rent: Decimal
    tax_deduction_percentage: Decimal
    tax_deduction_amount: Decimal
    mileage_used: int
    final_amount: Decimal
    driver_charges: DriverCharges = field(default_factory=DriverCharges)
    vendor_charges: Optional[VendorCharges] = None

    def as_dict(self) -> dict:
        data = {
            "total_days": self.total_days,
            "rent_per_day": self.rent_per_day,
            "total_rent": self.total_rent,
            "driver_charges": self.driver_charges.as_dict(),
            "tax_deduction": {
                "percentage": self.tax_deduction_percentage,
                "amount": self.tax_deduction_amount,
            },
            "mileage_used": self.mileage_used,
            "final_amount": self.final_amount,
        }
        # Consumers check for the key itself, so an absent charge is left out.
        if self.vendor_charges is not None:
            data["vendor_charges"] = self.vendor_charges.as_dict()
        return data


def rental_days(start, end) -> int:
    """Inclusive day count between two dates; a partial day counts as a full one.

    Missing dates give zero days.
    """
    if start is None or end is None:
        return 0
    if isinstance(start, datetime.datetime) or isinstance(end, datetime.datetime):
        start_dt = _as_datetime(start, end)
        end_dt = _as_datetime(end, start)
        elapsed = (end_dt - start_dt).total_seconds()
        return math.ceil(elapsed / SECONDS_PER_DAY) + 1
    return (end - start).days + 1


def _as_datetime(value, other):
    if isinstance(value, datetime.datetime):
        return value
    tzinfo = other.tzinfo if isinstance(other, datetime.datetime) else None
    return datetime.datetime.combine(value, datetime.time.min, tzinfo=tzinfo)


def calculate_driver_charges(
    driver: Optional[DriverRates],
    total_days: int,
    actual_duty_hours,
    is_outstation: bool,
) -> DriverCharges:
    if driver is None:
        return DriverCharges()

    daily_rate = to_decimal(driver.outstation_daily_rate if is_outstation else driver.local_daily_rate)
    overtime_hours = max(
        to_decimal(actual_duty_hours) - to_decimal(driver.overtime_threshold_hours),
        DECIMAL_ZERO,
    )
    overtime_amount = round_currency(overtime_hours * to_decimal(driver.overtime_hourly_rate))
    total = round_currency(daily_rate * total_days + overtime_amount)
    return DriverCharges(
        daily_rate=round_currency(daily_rate),
        overtime_hours=overtime_hours,
        overtime_amount=overtime_amount,
        total_amount=total,
    )


def calculate_vendor_charges(vehicle: VehicleRates, total_days: int) -> Optional[VendorCharges]:
    if vehicle.vehicle_type != VEHICLE_OUTSOURCED_IN or not vehicle.has_vendor_info:
        return None
    daily_rate = round_currency(vehicle.daily_vendor_rate)
    return VendorCharges(daily_rate=daily_rate, total_amount=round_currency(daily_rate * total_days))


def mileage_used(mileage_start, mileage_end) -> int:
    return max(0, (mileage_end or 0) - (mileage_start or 0))


def compute_settlement(
    terms: SettlementTerms,
    vehicle: Optional[VehicleRates],
    driver: Optional[DriverRates] = None,
) -> SettlementResult:
    """Derive days, rent, driver/vendor charges, tax and the final amount for a booking.

    The calculation never raises and does not validate its inputs: a missing
    vehicle prices the rent at zero and missing dates give zero days. Run
    :func:`settlement_errors` first when the result is going to be stored.
    Identical inputs always give identical results.
    """
    total_days = rental_days(terms.start_date, terms.end_date)
    rent_per_day = round_currency(vehicle.daily_rate if vehicle is not None else DECIMAL_ZERO)
    total_rent = round_currency(rent_per_day * total_days)

    driver_charges = calculate_driver_charges(
        driver,
        total_days,
        terms.actual_duty_hours,
        terms.is_outstation,
    )
    vendor_charges = calculate_vendor_charges(vehicle, total_days) if vehicle is not None else None

    percentage = to_decimal(terms.tax_deduction_percentage)
    tax_amount = round_currency(total_rent * percentage / Decimal("100"))

    # Vendor charges are owed to the vendor and stay out of the customer total.
    final_amount = round_currency(total_rent + driver_charges.total_amount - tax_amount)

    return SettlementResult(
        total_days=total_days,
        rent_per_day=rent_per_day,
        total_rent=total_rent,
        driver_charges=driver_charges,
        vendor_charges=vendor_charges,
        tax_deduction_percentage=percentage,
        tax_deduction_amount=tax_amount,
        mileage_used=mileage_used(terms.mileage_start, terms.mileage_end),
        final_amount=final_amount,
    )


def settlement_errors(terms: SettlementTerms, vehicle: Optional[VehicleRates]) -> dict:
    """Return field-keyed validation messages for inputs the engine cannot settle."""
    errors = {}
    if vehicle is None:
        errors["vehicle"] = ["A vehicle is required to settle a booking."]
    elif to_decimal(vehicle.daily_rate) < 0:
        errors["vehicle"] = ["The vehicle's daily rate cannot be negative."]

    if terms.start_date is None:
        errors["start_date"] = ["Start date is required."]
    if terms.end_date is None:
        errors["end_date"] = ["End date is required."]
    elif terms.start_date is not None and terms.end_date < terms.start_date:
        errors["end_date"] = ["End date cannot be before the start date."]

    percentage = to_decimal(terms.tax_deduction_percentage)
    if percentage < 0 or percentage > 100:
        errors["tax_deduction_percentage"] = ["Tax deduction must be between 0 and 100 percent."]

    if to_decimal(terms.actual_duty_hours) < 0:
        errors["actual_duty_hours"] = ["Duty hours cannot be negative."]

    if terms.mileage_start is not None and terms.mileage_start < 0:
        errors["mileage_start"] = ["Start mileage cannot be negative."]
    if terms.mileage_end is not None and terms.mileage_end < (terms.mileage_start or 0):
        errors["mileage_end"] = ["End mileage cannot be lower than the start mileage."]
    return errors
