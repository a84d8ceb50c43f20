import datetime
from decimal import Decimal
from io import StringIO

from django.contrib.auth.models import User
from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.test import TestCase

from .models import (
    Booking,
    Customer,
    Driver,
    DriverMonthlyExpense,
    Expense,
    OutsourcedVehicle,
    Payment,
    SequenceCounter,
    Vehicle,
)


def make_customer(name="Ali Raza", **extra):
    values = {
        "name": name,
        "phone": "0300-1234567",
        "cnic": "35202-1234567-1",
        "license_number": "LHR-55221",
    }
    values.update(extra)
    return Customer.objects.create(**values)


def make_vehicle(registration="LEA-1234", daily_rate="2000", **extra):
    values = {
        "registration_number": registration,
        "make": "Toyota",
        "model": "Corolla",
        "year": 2021,
        "daily_rate": Decimal(daily_rate),
        "mileage": 10000,
    }
    values.update(extra)
    return Vehicle.objects.create(**values)


def make_driver(cnic="35202-7654321-3", **extra):
    values = {
        "name": "Imran Khan",
        "cnic": cnic,
        "license_number": "DL-8891",
        "phone": "0321-7654321",
        "joining_date": datetime.date(2023, 6, 1),
    }
    values.update(extra)
    return Driver.objects.create(**values)


def make_booking(customer, vehicle, **extra):
    values = {
        "customer": customer,
        "vehicle": vehicle,
        "start_date": datetime.date(2024, 1, 1),
        "end_date": datetime.date(2024, 1, 3),
        "mileage_start": 10000,
    }
    values.update(extra)
    return Booking.objects.create(**values)


class BookingSettlementTests(TestCase):
    def setUp(self):
        self.customer = make_customer()
        self.vehicle = make_vehicle()
        self.driver = make_driver()

    def test_save_stores_settlement(self):
        booking = make_booking(
            self.customer,
            self.vehicle,
            driver=self.driver,
            actual_duty_hours=Decimal("14"),
            tax_deduction_percentage=Decimal("10"),
        )
        booking.refresh_from_db()

        self.assertEqual(booking.total_days, 3)
        self.assertEqual(booking.rent_per_day, Decimal("2000.00"))
        self.assertEqual(booking.total_rent, Decimal("6000.00"))
        self.assertEqual(booking.overtime_hours, Decimal("2.00"))
        self.assertEqual(booking.driver_daily_rate, Decimal("1000.00"))
        self.assertEqual(booking.driver_overtime_amount, Decimal("400.00"))
        self.assertEqual(booking.driver_charges_total, Decimal("3400.00"))
        self.assertEqual(booking.tax_deduction_amount, Decimal("600.00"))
        self.assertEqual(booking.final_amount, Decimal("8800.00"))
        self.assertEqual(booking.total_amount, Decimal("8800.00"))
        self.assertEqual(booking.balance_amount, Decimal("8800.00"))
        self.assertEqual(booking.payment_status, Booking.PAYMENT_UNPAID)
        self.assertIsNone(booking.vendor_charges)

    def test_booking_numbers_are_sequential(self):
        first = make_booking(self.customer, self.vehicle)
        second = make_booking(self.customer, make_vehicle("LEA-5678"))

        self.assertEqual(first.booking_number, "BK000001")
        self.assertEqual(second.booking_number, "BK000002")
        self.assertEqual(SequenceCounter.objects.get(name="booking").last_value, 2)

    def test_booking_number_kept_on_update(self):
        booking = make_booking(self.customer, self.vehicle)
        booking.notes = "Airport pickup"
        booking.save()
        booking.refresh_from_db()

        self.assertEqual(booking.booking_number, "BK000001")
        self.assertEqual(SequenceCounter.objects.get(name="booking").last_value, 1)

    def test_payment_status_follows_received_amount(self):
        booking = make_booking(self.customer, self.vehicle)

        booking.received_amount = Decimal("2500")
        booking.save()
        self.assertEqual(booking.payment_status, Booking.PAYMENT_PARTIAL)
        self.assertEqual(booking.balance_amount, Decimal("3500.00"))

        booking.received_amount = Decimal("6000")
        booking.save()
        self.assertEqual(booking.payment_status, Booking.PAYMENT_PAID)
        self.assertEqual(booking.balance_amount, Decimal("0.00"))

    def test_update_fields_save_refreshes_derived_values(self):
        booking = make_booking(self.customer, self.vehicle)

        booking.received_amount = Decimal("1000")
        booking.tax_deduction_percentage = Decimal("5")
        booking.save(update_fields=["received_amount", "tax_deduction_percentage"])
        booking.refresh_from_db()

        self.assertEqual(booking.tax_deduction_amount, Decimal("300.00"))
        self.assertEqual(booking.total_amount, Decimal("5700.00"))
        self.assertEqual(booking.balance_amount, Decimal("4700.00"))
        self.assertEqual(booking.payment_status, Booking.PAYMENT_PARTIAL)

    def test_outsourced_in_vehicle_records_vendor_charges(self):
        vehicle = make_vehicle(
            "LEB-4500",
            vehicle_type=Vehicle.TYPE_OUTSOURCED_IN,
            vendor_name="City Cars",
            daily_vendor_rate=Decimal("1500"),
        )
        booking = make_booking(self.customer, vehicle)
        booking.refresh_from_db()

        self.assertEqual(booking.vendor_daily_rate, Decimal("1500.00"))
        self.assertEqual(booking.vendor_charges_total, Decimal("4500.00"))
        self.assertEqual(booking.vendor_charges.total_amount, Decimal("4500.00"))
        self.assertEqual(booking.total_amount, Decimal("6000.00"))

    def test_mileage_total_from_readings(self):
        booking = make_booking(self.customer, self.vehicle, mileage_end=10640)
        self.assertEqual(booking.mileage_total, 640)

        booking.mileage_end = None
        booking.save()
        self.assertEqual(booking.mileage_total, 0)

    def test_invalid_inputs_are_rejected_before_writing(self):
        with self.assertRaises(ValidationError) as ctx:
            make_booking(
                self.customer,
                self.vehicle,
                start_date=datetime.date(2024, 1, 5),
                end_date=datetime.date(2024, 1, 1),
                tax_deduction_percentage=Decimal("150"),
                mileage_end=9000,
            )

        errors = ctx.exception.message_dict
        self.assertIn("end_date", errors)
        self.assertIn("tax_deduction_percentage", errors)
        self.assertIn("mileage_end", errors)
        self.assertEqual(Booking.objects.count(), 0)
        self.assertEqual(SequenceCounter.objects.get(name="booking").last_value, 0)

    def test_vehicle_is_required(self):
        with self.assertRaises(ValidationError) as ctx:
            make_booking(self.customer, None)

        self.assertIn("vehicle", ctx.exception.message_dict)

    def test_negative_received_amount_is_rejected(self):
        booking = make_booking(self.customer, self.vehicle)
        booking.received_amount = Decimal("-10")

        with self.assertRaises(ValidationError) as ctx:
            booking.save()

        self.assertIn("received_amount", ctx.exception.message_dict)


class BookingLinkTests(TestCase):
    def setUp(self):
        self.customer = make_customer()
        self.vehicle = make_vehicle()

    def test_create_books_vehicle_and_updates_customer(self):
        make_booking(self.customer, self.vehicle, received_amount=Decimal("1000"))

        self.vehicle.refresh_from_db()
        self.customer.refresh_from_db()
        self.assertEqual(self.vehicle.status, Vehicle.STATUS_BOOKED)
        self.assertEqual(self.customer.total_bookings, 1)
        self.assertEqual(self.customer.total_amount_paid, Decimal("1000.00"))
        self.assertEqual(self.customer.outstanding_balance, Decimal("5000.00"))

    def test_delete_releases_vehicle_and_updates_customer(self):
        booking = make_booking(self.customer, self.vehicle)
        booking.delete()

        self.vehicle.refresh_from_db()
        self.customer.refresh_from_db()
        self.assertEqual(self.vehicle.status, Vehicle.STATUS_AVAILABLE)
        self.assertEqual(self.customer.total_bookings, 0)
        self.assertEqual(self.customer.outstanding_balance, Decimal("0.00"))

    def test_changing_vehicle_moves_the_booking(self):
        booking = make_booking(self.customer, self.vehicle)
        replacement = make_vehicle("LEC-9000")

        booking.vehicle = replacement
        booking.save()

        self.vehicle.refresh_from_db()
        replacement.refresh_from_db()
        self.assertEqual(self.vehicle.status, Vehicle.STATUS_AVAILABLE)
        self.assertEqual(replacement.status, Vehicle.STATUS_BOOKED)

    def test_changing_customer_refreshes_both(self):
        booking = make_booking(self.customer, self.vehicle)
        other = make_customer("Sara Ahmed", cnic="35202-0000000-2")

        booking.customer = other
        booking.save()

        self.customer.refresh_from_db()
        other.refresh_from_db()
        self.assertEqual(self.customer.total_bookings, 0)
        self.assertEqual(other.total_bookings, 1)

    def test_status_edit_follows_vehicle(self):
        booking = make_booking(self.customer, self.vehicle)

        booking.status = Booking.STATUS_CANCELLED
        booking.save()
        self.vehicle.refresh_from_db()
        self.assertEqual(self.vehicle.status, Vehicle.STATUS_AVAILABLE)

        booking.status = Booking.STATUS_CONFIRMED
        booking.save()
        self.vehicle.refresh_from_db()
        self.assertEqual(self.vehicle.status, Vehicle.STATUS_BOOKED)

    def test_status_edit_cannot_cross_closed_states(self):
        booking = make_booking(self.customer, self.vehicle)
        booking.cancel()

        booking.status = Booking.STATUS_COMPLETED
        with self.assertRaises(ValidationError) as ctx:
            booking.save()

        self.assertIn("status", ctx.exception.message_dict)
        booking.refresh_from_db()
        self.assertEqual(booking.status, Booking.STATUS_CANCELLED)

    def test_cancelled_bookings_do_not_count_as_outstanding(self):
        booking = make_booking(self.customer, self.vehicle)
        booking.cancel()

        self.customer.refresh_from_db()
        self.assertEqual(self.customer.total_bookings, 1)
        self.assertEqual(self.customer.outstanding_balance, Decimal("0.00"))


class BookingLifecycleTests(TestCase):
    def setUp(self):
        self.customer = make_customer()
        self.vehicle = make_vehicle()
        self.driver = make_driver()
        self.booking = make_booking(self.customer, self.vehicle, driver=self.driver)

    def test_complete_records_trip_and_frees_vehicle(self):
        self.booking.complete(
            actual_return_date=datetime.date(2024, 1, 3),
            end_mileage=10750,
            expenses={"fuel": "1500", "toll": "300"},
            driver_allowance={"overtime_hours": 2, "food_nights": 1, "parking": "150"},
        )
        self.booking.refresh_from_db()
        self.vehicle.refresh_from_db()

        self.assertEqual(self.booking.status, Booking.STATUS_COMPLETED)
        self.assertEqual(self.booking.actual_return_date, datetime.date(2024, 1, 3))
        self.assertEqual(self.booking.mileage_total, 750)
        self.assertEqual(self.booking.expenses_total, Decimal("1800.00"))
        self.assertEqual(self.booking.allowance_overtime_amount, Decimal("400.00"))
        self.assertEqual(self.booking.allowance_food_amount, Decimal("500.00"))
        self.assertEqual(self.booking.allowance_total, Decimal("1050.00"))
        self.assertEqual(self.vehicle.status, Vehicle.STATUS_AVAILABLE)
        self.assertEqual(self.vehicle.mileage, 10750)

    def test_complete_keeps_explicit_allowance_amounts(self):
        self.booking.complete(driver_allowance={"overtime_hours": 2, "overtime_amount": "250"})

        self.assertEqual(self.booking.allowance_overtime_amount, Decimal("250"))
        self.assertIsNotNone(self.booking.actual_return_date)

    def test_complete_rejects_unknown_expense(self):
        with self.assertRaises(ValidationError) as ctx:
            self.booking.complete(expenses={"snacks": "100"})

        self.assertIn("expenses", ctx.exception.message_dict)
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, Booking.STATUS_CONFIRMED)

    def test_complete_rejects_fractional_nights(self):
        with self.assertRaises(ValidationError) as ctx:
            self.booking.complete(driver_allowance={"food_nights": Decimal("2.5")})

        self.assertIn("driver_allowance", ctx.exception.message_dict)
        self.booking.refresh_from_db()
        self.assertEqual(self.booking.status, Booking.STATUS_CONFIRMED)
        self.assertEqual(self.booking.allowance_food_nights, 0)

    def test_cancel_frees_vehicle(self):
        self.booking.cancel()

        self.vehicle.refresh_from_db()
        self.assertEqual(self.booking.status, Booking.STATUS_CANCELLED)
        self.assertEqual(self.vehicle.status, Vehicle.STATUS_AVAILABLE)

    def test_cancelled_booking_cannot_be_completed(self):
        self.booking.cancel()

        with self.assertRaises(ValidationError):
            self.booking.complete()

    def test_completed_booking_cannot_be_cancelled(self):
        self.booking.complete()

        with self.assertRaises(ValidationError):
            self.booking.cancel()

    def test_record_payment_resettles(self):
        self.booking.record_payment(Decimal("4000"), tax_deduction_percentage=Decimal("10"))
        self.booking.refresh_from_db()

        # 6000 rent + 3000 driver - 600 tax
        self.assertEqual(self.booking.total_amount, Decimal("8400.00"))
        self.assertEqual(self.booking.balance_amount, Decimal("4400.00"))
        self.assertEqual(self.booking.payment_status, Booking.PAYMENT_PARTIAL)

    def test_sync_receivable_creates_then_updates_one_entry(self):
        payment = self.booking.sync_receivable()

        self.assertEqual(payment.payment_type, Payment.TYPE_RECEIVABLE)
        self.assertEqual(payment.category, Payment.CATEGORY_RENTAL)
        self.assertEqual(payment.customer, self.customer)
        self.assertEqual(payment.amount, Decimal("9000.00"))
        self.assertEqual(payment.due_date, self.booking.end_date)
        self.assertEqual(payment.status, Payment.STATUS_PENDING)

        self.booking.record_payment(Decimal("9000"))
        payment = self.booking.sync_receivable()

        self.assertEqual(self.booking.payments.count(), 1)
        self.assertEqual(payment.paid_amount, Decimal("9000.00"))
        self.assertEqual(payment.balance_amount, Decimal("0.00"))
        self.assertEqual(payment.status, Payment.STATUS_PAID)


class PaymentTests(TestCase):
    def _payment(self, **extra):
        values = {
            "payment_type": Payment.TYPE_RECEIVABLE,
            "category": Payment.CATEGORY_OTHER,
            "description": "Security refund",
            "amount": Decimal("5000"),
        }
        values.update(extra)
        return Payment.objects.create(**values)

    def test_status_moves_from_pending_to_paid(self):
        payment = self._payment()
        self.assertEqual(payment.status, Payment.STATUS_PENDING)
        self.assertEqual(payment.balance_amount, Decimal("5000.00"))

        payment.paid_amount = Decimal("5000")
        payment.save()
        self.assertEqual(payment.status, Payment.STATUS_PAID)
        self.assertEqual(payment.balance_amount, Decimal("0.00"))

    def test_part_paid_stays_pending(self):
        payment = self._payment(paid_amount=Decimal("1000"))

        self.assertEqual(payment.status, Payment.STATUS_PENDING)
        self.assertEqual(payment.balance_amount, Decimal("4000.00"))

    def test_unpaid_status_is_sticky(self):
        payment = self._payment(status=Payment.STATUS_UNPAID)

        payment.paid_amount = Decimal("2000")
        payment.save()
        payment.refresh_from_db()

        self.assertEqual(payment.status, Payment.STATUS_UNPAID)
        self.assertEqual(payment.balance_amount, Decimal("3000.00"))

    def test_update_fields_save_keeps_balance_current(self):
        payment = self._payment()

        payment.paid_amount = Decimal("5000")
        payment.save(update_fields=["paid_amount"])
        payment.refresh_from_db()

        self.assertEqual(payment.balance_amount, Decimal("0.00"))
        self.assertEqual(payment.status, Payment.STATUS_PAID)

    def test_record_adds_instalments(self):
        payment = self._payment()

        payment.record(Decimal("1500"), reference_number="RCPT-1")
        payment.record(Decimal("3500"), payment_date=datetime.date(2024, 2, 1))

        self.assertEqual(payment.paid_amount, Decimal("5000.00"))
        self.assertEqual(payment.balance_amount, Decimal("0.00"))
        self.assertEqual(payment.status, Payment.STATUS_PAID)
        self.assertEqual(payment.reference_number, "RCPT-1")
        self.assertEqual(payment.payment_date, datetime.date(2024, 2, 1))

    def test_record_rejects_non_positive_amount(self):
        payment = self._payment()

        with self.assertRaises(ValidationError) as ctx:
            payment.record(Decimal("0"))

        self.assertIn("paid_amount", ctx.exception.message_dict)


class OutsourcedVehicleTests(TestCase):
    def test_balance_follows_payments(self):
        vehicle = OutsourcedVehicle.objects.create(
            registration_number="LED-7788",
            make="Honda",
            model="City",
            year=2022,
            vendor_name="Rent Hub",
            daily_rate=Decimal("3000"),
            contract_start_date=datetime.date(2024, 1, 1),
            total_payable=Decimal("30000"),
        )
        self.assertEqual(vehicle.balance_amount, Decimal("30000.00"))

        vehicle.update_payment(Decimal("12000"))
        vehicle.refresh_from_db()
        self.assertEqual(vehicle.balance_amount, Decimal("18000.00"))

        vehicle.total_payable = Decimal("33000")
        vehicle.save(update_fields=["total_payable"])
        vehicle.refresh_from_db()
        self.assertEqual(vehicle.balance_amount, Decimal("21000.00"))


class FleetAndStaffTests(TestCase):
    def test_vehicle_status_and_maintenance(self):
        vehicle = make_vehicle()
        vehicle.add_maintenance_log(datetime.date(2024, 2, 1), "Oil change", "4500", performed_by="Auto Care")
        vehicle.add_maintenance_log(datetime.date(2024, 3, 1), "Brake pads", Decimal("8000"))
        vehicle.set_status(Vehicle.STATUS_MAINTENANCE)
        vehicle.refresh_from_db()

        self.assertEqual(vehicle.total_maintenance_cost, Decimal("12500.00"))
        self.assertEqual(vehicle.status, Vehicle.STATUS_MAINTENANCE)
        with self.assertRaises(ValidationError):
            vehicle.set_status("scrapped")

    def test_driver_monthly_expense_is_priced_from_rates(self):
        driver = make_driver(night_food_allowance=Decimal("600"))
        expense = DriverMonthlyExpense.objects.create(
            driver=driver,
            month=datetime.date(2024, 4, 17),
            overtime_hours=Decimal("5"),
            food_allowance_nights=3,
            outstation_nights=2,
            parking_amount=Decimal("2000"),
        )

        self.assertEqual(expense.month, datetime.date(2024, 4, 1))
        self.assertEqual(expense.overtime_amount, Decimal("1000.00"))
        self.assertEqual(expense.food_allowance_amount, Decimal("1800.00"))
        self.assertEqual(expense.outstation_amount, Decimal("2000.00"))
        self.assertEqual(expense.total_amount, Decimal("6800.00"))

    def test_customer_identity_rules(self):
        individual = Customer(name="No Papers", phone="0300", customer_type=Customer.TYPE_INDIVIDUAL)
        with self.assertRaises(ValidationError) as ctx:
            individual.clean()
        self.assertIn("cnic", ctx.exception.message_dict)
        self.assertIn("license_number", ctx.exception.message_dict)

        company = Customer(name="Acme Motors", phone="042", customer_type=Customer.TYPE_COMPANY)
        with self.assertRaises(ValidationError) as ctx:
            company.clean()
        self.assertEqual(list(ctx.exception.message_dict), ["company_registration"])

        company.company_registration = "SECP-0099"
        company.clean()

    def test_expense_review(self):
        reviewer = User.objects.create_user(username="manager", password="p")
        fuel = Expense.objects.create(
            category=Expense.CATEGORY_FUEL, description="Fuel top-up", amount=Decimal("3000"),
            date=datetime.date(2024, 1, 2),
        )
        toll = Expense.objects.create(
            category=Expense.CATEGORY_TOLL, description="Motorway toll", amount=Decimal("450"),
            date=datetime.date(2024, 1, 2),
        )

        fuel.approve(reviewer)
        toll.reject(reviewer, reason="No receipt")

        self.assertEqual(fuel.status, Expense.STATUS_APPROVED)
        self.assertEqual(fuel.approved_by, "manager")
        self.assertIsNotNone(fuel.approval_date)
        self.assertEqual(toll.status, Expense.STATUS_REJECTED)
        self.assertEqual(toll.notes, "No receipt")


class ManagementCommandTests(TestCase):
    def test_recalculate_settlements_repairs_derived_values(self):
        booking = make_booking(make_customer(), make_vehicle())
        Booking.objects.filter(pk=booking.pk).update(total_amount=0, balance_amount=0, total_days=0)
        payment = Payment.objects.create(
            payment_type=Payment.TYPE_PAYABLE,
            category=Payment.CATEGORY_VENDOR,
            description="Vendor invoice",
            amount=Decimal("900"),
        )
        Payment.objects.filter(pk=payment.pk).update(balance_amount=0)

        out = StringIO()
        call_command("recalculate_settlements", stdout=out)
        booking.refresh_from_db()
        payment.refresh_from_db()

        self.assertEqual(booking.total_days, 3)
        self.assertEqual(booking.total_amount, Decimal("6000.00"))
        self.assertEqual(booking.balance_amount, Decimal("6000.00"))
        self.assertEqual(payment.balance_amount, Decimal("900.00"))
        self.assertIn("BK000001", out.getvalue())

    def test_create_admin(self):
        out = StringIO()
        call_command("create_admin", username="boss", password="s3cret-pass", stdout=out)

        user = User.objects.get(username="boss")
        self.assertTrue(user.is_superuser)
        self.assertTrue(user.check_password("s3cret-pass"))
        self.assertIn("Created admin user 'boss'", out.getvalue())
