import datetime
from decimal import Decimal

from django.test import SimpleTestCase

from .settlement import (
    VEHICLE_COMPANY_OWNED,
    VEHICLE_OUTSOURCED_IN,
    VEHICLE_OUTSOURCED_OUT,
    DriverRates,
    SettlementTerms,
    VehicleRates,
    compute_settlement,
    mileage_used,
    rental_days,
    round_currency,
    settlement_errors,
)


def _terms(**overrides):
    values = {
        "start_date": datetime.date(2024, 1, 1),
        "end_date": datetime.date(2024, 1, 3),
    }
    values.update(overrides)
    return SettlementTerms(**values)


class SettlementScenarioTests(SimpleTestCase):
    def setUp(self):
        self.vehicle = VehicleRates(daily_rate=Decimal("2000"))
        self.driver = DriverRates(
            local_daily_rate=Decimal("1000"),
            overtime_threshold_hours=Decimal("12"),
            overtime_hourly_rate=Decimal("200"),
        )

    def test_three_days_without_driver(self):
        result = compute_settlement(_terms(), self.vehicle)

        self.assertEqual(result.total_days, 3)
        self.assertEqual(result.rent_per_day, Decimal("2000.00"))
        self.assertEqual(result.total_rent, Decimal("6000.00"))
        self.assertEqual(result.driver_charges.total_amount, Decimal("0"))
        self.assertEqual(result.final_amount, Decimal("6000.00"))

    def test_driver_overtime_added_to_final_amount(self):
        result = compute_settlement(_terms(actual_duty_hours=Decimal("14")), self.vehicle, self.driver)

        charges = result.driver_charges
        self.assertEqual(charges.daily_rate, Decimal("1000.00"))
        self.assertEqual(charges.overtime_hours, Decimal("2"))
        self.assertEqual(charges.overtime_amount, Decimal("400.00"))
        self.assertEqual(charges.total_amount, Decimal("3400.00"))
        self.assertEqual(result.final_amount, Decimal("9400.00"))

    def test_tax_deducted_from_rent_only(self):
        result = compute_settlement(
            _terms(actual_duty_hours=Decimal("14"), tax_deduction_percentage=Decimal("10")),
            self.vehicle,
            self.driver,
        )

        self.assertEqual(result.tax_deduction_amount, Decimal("600.00"))
        self.assertEqual(result.final_amount, Decimal("8800.00"))
        self.assertEqual(result.as_dict()["tax_deduction"], {
            "percentage": Decimal("10"),
            "amount": Decimal("600.00"),
        })

    def test_vendor_charges_reported_but_not_billed(self):
        vehicle = VehicleRates(
            daily_rate=Decimal("2000"),
            vehicle_type=VEHICLE_OUTSOURCED_IN,
            daily_vendor_rate=Decimal("1500"),
        )
        result = compute_settlement(_terms(), vehicle)

        self.assertIsNotNone(result.vendor_charges)
        self.assertEqual(result.vendor_charges.daily_rate, Decimal("1500.00"))
        self.assertEqual(result.vendor_charges.total_amount, Decimal("4500.00"))
        self.assertEqual(result.final_amount, Decimal("6000.00"))
        self.assertEqual(result.as_dict()["vendor_charges"]["total_amount"], Decimal("4500.00"))


class SettlementBoundaryTests(SimpleTestCase):
    def setUp(self):
        self.vehicle = VehicleRates(daily_rate=Decimal("2500"))

    def test_same_day_booking_counts_one_day(self):
        day = datetime.date(2024, 3, 5)
        result = compute_settlement(_terms(start_date=day, end_date=day), self.vehicle)

        self.assertEqual(result.total_days, 1)
        self.assertEqual(result.total_rent, Decimal("2500.00"))

    def test_partial_day_rounds_up(self):
        start = datetime.datetime(2024, 3, 5, 9, 0)
        end = datetime.datetime(2024, 3, 6, 10, 0)

        self.assertEqual(rental_days(start, end), 3)
        self.assertEqual(rental_days(start, start + datetime.timedelta(days=1)), 2)

    def test_duty_hours_at_threshold_give_no_overtime(self):
        for hours in ("0", "11.5", "12"):
            with self.subTest(hours=hours):
                result = compute_settlement(
                    _terms(actual_duty_hours=Decimal(hours)), self.vehicle, DriverRates()
                )
                self.assertEqual(result.driver_charges.overtime_hours, Decimal("0"))
                self.assertEqual(result.driver_charges.overtime_amount, Decimal("0"))

    def test_fractional_overtime_is_priced_per_hour(self):
        result = compute_settlement(_terms(actual_duty_hours=Decimal("13.5")), self.vehicle, DriverRates())

        self.assertEqual(result.driver_charges.overtime_hours, Decimal("1.5"))
        self.assertEqual(result.driver_charges.overtime_amount, Decimal("300.00"))

    def test_outstation_uses_outstation_rate(self):
        result = compute_settlement(_terms(is_outstation=True), self.vehicle, DriverRates())

        self.assertEqual(result.driver_charges.daily_rate, Decimal("1500.00"))
        self.assertEqual(result.driver_charges.total_amount, Decimal("4500.00"))

    def test_no_driver_gives_zero_charges(self):
        result = compute_settlement(_terms(actual_duty_hours=Decimal("20")), self.vehicle)

        self.assertEqual(result.driver_charges.as_dict(), {
            "daily_rate": Decimal("0"),
            "overtime_hours": Decimal("0"),
            "overtime_amount": Decimal("0"),
            "total_amount": Decimal("0"),
        })

    def test_vendor_charges_absent_unless_outsourced_in_with_rate(self):
        vehicles = [
            VehicleRates(daily_rate=Decimal("2000"), vehicle_type=VEHICLE_COMPANY_OWNED, daily_vendor_rate=Decimal("900")),
            VehicleRates(daily_rate=Decimal("2000"), vehicle_type=VEHICLE_OUTSOURCED_OUT, daily_vendor_rate=Decimal("900")),
            VehicleRates(daily_rate=Decimal("2000"), vehicle_type=VEHICLE_OUTSOURCED_IN),
        ]
        for vehicle in vehicles:
            with self.subTest(vehicle=vehicle):
                result = compute_settlement(_terms(), vehicle)
                self.assertIsNone(result.vendor_charges)
                self.assertNotIn("vendor_charges", result.as_dict())

    def test_identical_inputs_give_identical_results(self):
        terms = _terms(actual_duty_hours=Decimal("15"), tax_deduction_percentage=Decimal("7.5"))
        vehicle = VehicleRates(
            daily_rate=Decimal("3333.33"), vehicle_type=VEHICLE_OUTSOURCED_IN, daily_vendor_rate=Decimal("1111.11")
        )

        first = compute_settlement(terms, vehicle, DriverRates())
        second = compute_settlement(terms, vehicle, DriverRates())

        self.assertEqual(first, second)
        self.assertEqual(first.as_dict(), second.as_dict())

    def test_money_rounds_half_up(self):
        self.assertEqual(round_currency(Decimal("10.005")), Decimal("10.01"))
        self.assertEqual(round_currency("2.344"), Decimal("2.34"))
        self.assertEqual(round_currency(None), Decimal("0.00"))

    def test_mileage_used_is_clamped(self):
        self.assertEqual(mileage_used(1000, 1250), 250)
        self.assertEqual(mileage_used(1000, None), 0)
        self.assertEqual(mileage_used(1000, 900), 0)

    def test_missing_vehicle_prices_rent_at_zero(self):
        result = compute_settlement(_terms(), None, DriverRates())

        self.assertEqual(result.total_days, 3)
        self.assertEqual(result.total_rent, Decimal("0.00"))
        self.assertIsNone(result.vendor_charges)
        self.assertEqual(result.final_amount, Decimal("3000.00"))

    def test_missing_dates_give_zero_days(self):
        result = compute_settlement(_terms(start_date=None, end_date=None), self.vehicle)

        self.assertEqual(rental_days(None, datetime.date(2024, 1, 3)), 0)
        self.assertEqual(result.total_days, 0)
        self.assertEqual(result.final_amount, Decimal("0.00"))


class SettlementValidationTests(SimpleTestCase):
    def setUp(self):
        self.vehicle = VehicleRates(daily_rate=Decimal("2000"))

    def test_valid_terms_have_no_errors(self):
        self.assertEqual(settlement_errors(_terms(), self.vehicle), {})

    def test_missing_vehicle(self):
        errors = settlement_errors(_terms(), None)

        self.assertEqual(list(errors), ["vehicle"])

    def test_end_before_start(self):
        errors = settlement_errors(
            _terms(start_date=datetime.date(2024, 1, 5), end_date=datetime.date(2024, 1, 4)),
            self.vehicle,
        )

        self.assertIn("end_date", errors)

    def test_tax_percentage_out_of_range(self):
        for percentage in ("-1", "100.01"):
            with self.subTest(percentage=percentage):
                errors = settlement_errors(_terms(tax_deduction_percentage=Decimal(percentage)), self.vehicle)
                self.assertIn("tax_deduction_percentage", errors)
        self.assertEqual(settlement_errors(_terms(tax_deduction_percentage=Decimal("100")), self.vehicle), {})

    def test_negative_duty_hours_and_backwards_mileage(self):
        errors = settlement_errors(
            _terms(actual_duty_hours=Decimal("-2"), mileage_start=5000, mileage_end=4000),
            self.vehicle,
        )

        self.assertIn("actual_duty_hours", errors)
        self.assertIn("mileage_end", errors)
