import logging
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models, transaction
from django.db.models import Count, F, Q, Sum
from django.utils import timezone

from .settlement import (
    DECIMAL_ZERO,
    VEHICLE_COMPANY_OWNED,
    VEHICLE_OUTSOURCED_IN,
    VEHICLE_OUTSOURCED_OUT,
    DriverRates,
    SettlementTerms,
    VehicleRates,
    DriverCharges,
    VendorCharges,
    compute_settlement,
    mileage_used,
    round_currency,
    settlement_errors,
    to_decimal,
)

logger = logging.getLogger(__name__)

BOOKING_NUMBER_PREFIX = 'BK'
BOOKING_NUMBER_WIDTH = 6
BOOKING_SEQUENCE = 'booking'

NON_NEGATIVE = [MinValueValidator(Decimal('0'))]


def customer_identity_errors(customer_type, cnic, license_number, company_registration):
    """Individuals are identified by CNIC and licence, companies by registration."""
    errors = {}
    if customer_type == Customer.TYPE_INDIVIDUAL:
        if not (cnic or '').strip():
            errors['cnic'] = ['CNIC is required for individual customers.']
        if not (license_number or '').strip():
            errors['license_number'] = ['License number is required for individual customers.']
    elif customer_type == Customer.TYPE_COMPANY:
        if not (company_registration or '').strip():
            errors['company_registration'] = ['Company registration is required for company customers.']
    return errors


class SequenceCounter(models.Model):
    """Named counters handed out under a row lock."""

    name = models.CharField(max_length=50, unique=True)
    last_value = models.PositiveIntegerField(default=0)

    def __str__(self):
        return f"{self.name}: {self.last_value}"

    @classmethod
    def next_value(cls, name):
        with transaction.atomic():
            counter, _ = cls.objects.select_for_update().get_or_create(name=name)
            counter.last_value = F('last_value') + 1
            counter.save(update_fields=['last_value'])
            counter.refresh_from_db(fields=['last_value'])
            return counter.last_value

    @classmethod
    def next_booking_number(cls):
        value = cls.next_value(BOOKING_SEQUENCE)
        return f"{BOOKING_NUMBER_PREFIX}{value:0{BOOKING_NUMBER_WIDTH}d}"


class Customer(models.Model):
    TYPE_INDIVIDUAL = 'individual'
    TYPE_COMPANY = 'company'
    TYPE_CHOICES = [
        (TYPE_INDIVIDUAL, 'Individual'),
        (TYPE_COMPANY, 'Company'),
    ]

    STATUS_ACTIVE = 'active'
    STATUS_INACTIVE = 'inactive'
    STATUS_BLACKLISTED = 'blacklisted'
    STATUS_SUSPENDED = 'suspended'
    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_INACTIVE, 'Inactive'),
        (STATUS_BLACKLISTED, 'Blacklisted'),
        (STATUS_SUSPENDED, 'Suspended'),
    ]

    customer_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default=TYPE_INDIVIDUAL)
    name = models.CharField(max_length=255)
    cnic = models.CharField(max_length=20, blank=True, default='')
    company_registration = models.CharField(max_length=100, blank=True, default='')
    license_number = models.CharField(max_length=50, blank=True, default='')
    phone = models.CharField(max_length=30)
    email = models.EmailField(blank=True, default='')
    address = models.TextField(blank=True, default='')
    emergency_contact_name = models.CharField(max_length=255, blank=True, default='')
    emergency_contact_phone = models.CharField(max_length=30, blank=True, default='')
    emergency_contact_relation = models.CharField(max_length=50, blank=True, default='')
    credit_limit = models.DecimalField(max_digits=12, decimal_places=2, default=0, validators=NON_NEGATIVE)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_ACTIVE)
    notes = models.TextField(blank=True, default='')
    # Rollups kept current by the booking signals.
    total_bookings = models.PositiveIntegerField(default=0, editable=False)
    total_amount_paid = models.DecimalField(max_digits=12, decimal_places=2, default=0, editable=False)
    outstanding_balance = models.DecimalField(max_digits=12, decimal_places=2, default=0, editable=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return self.name

    def clean(self):
        errors = customer_identity_errors(
            self.customer_type, self.cnic, self.license_number, self.company_registration
        )
        if errors:
            raise ValidationError(errors)

    def refresh_booking_stats(self):
        """Recount bookings and money figures from this customer's bookings."""
        totals = self.bookings.aggregate(
            count=Count('id'),
            paid=Sum('received_amount'),
            outstanding=Sum('balance_amount', filter=~Q(status=Booking.STATUS_CANCELLED)),
        )
        self.total_bookings = totals['count'] or 0
        self.total_amount_paid = round_currency(totals['paid'] or DECIMAL_ZERO)
        self.outstanding_balance = round_currency(totals['outstanding'] or DECIMAL_ZERO)
        Customer.objects.filter(pk=self.pk).update(
            total_bookings=self.total_bookings,
            total_amount_paid=self.total_amount_paid,
            outstanding_balance=self.outstanding_balance,
        )


class Vehicle(models.Model):
    """A vehicle in the rental fleet, owned or taken in from a vendor."""

    TYPE_COMPANY_OWNED = VEHICLE_COMPANY_OWNED
    TYPE_OUTSOURCED_IN = VEHICLE_OUTSOURCED_IN
    TYPE_OUTSOURCED_OUT = VEHICLE_OUTSOURCED_OUT
    TYPE_CHOICES = [
        (TYPE_COMPANY_OWNED, 'Company-owned'),
        (TYPE_OUTSOURCED_IN, 'Outsourced-in'),
        (TYPE_OUTSOURCED_OUT, 'Outsourced-out'),
    ]

    STATUS_AVAILABLE = 'available'
    STATUS_BOOKED = 'booked'
    STATUS_MAINTENANCE = 'under_maintenance'
    STATUS_CHOICES = [
        (STATUS_AVAILABLE, 'Available'),
        (STATUS_BOOKED, 'Booked'),
        (STATUS_MAINTENANCE, 'Under Maintenance'),
    ]

    registration_number = models.CharField(max_length=30, unique=True)
    make = models.CharField(max_length=100)
    model = models.CharField(max_length=100)
    year = models.PositiveIntegerField()
    color = models.CharField(max_length=50, blank=True, default='')
    mileage = models.PositiveIntegerField(default=0, help_text="Current odometer reading")
    vehicle_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default=TYPE_COMPANY_OWNED)
    vendor_name = models.CharField(max_length=255, blank=True, default='')
    vendor_contact = models.CharField(max_length=100, blank=True, default='')
    vendor_contract_start = models.DateField(null=True, blank=True)
    vendor_contract_end = models.DateField(null=True, blank=True)
    daily_vendor_rate = models.DecimalField(
        max_digits=12, decimal_places=2, null=True, blank=True, validators=NON_NEGATIVE,
        help_text="Rate paid to the vendor per day; leave empty when there is no vendor.",
    )
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_AVAILABLE)
    daily_rate = models.DecimalField(max_digits=12, decimal_places=2, validators=NON_NEGATIVE)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['registration_number']

    def __str__(self):
        return f"{self.registration_number} ({self.make} {self.model})"

    @property
    def has_vendor_info(self):
        return self.daily_vendor_rate is not None

    @property
    def total_maintenance_cost(self):
        total = self.maintenance_logs.aggregate(total=Sum('cost'))['total']
        return round_currency(total or DECIMAL_ZERO)

    def settlement_rates(self):
        return VehicleRates(
            daily_rate=to_decimal(self.daily_rate),
            vehicle_type=self.vehicle_type,
            daily_vendor_rate=to_decimal(self.daily_vendor_rate) if self.has_vendor_info else None,
        )

    def add_maintenance_log(self, date, description, cost, performed_by=''):
        log = self.maintenance_logs.create(
            date=date,
            description=description,
            cost=to_decimal(cost),
            performed_by=performed_by or '',
        )
        logger.info("Maintenance logged for vehicle %s: %s (%s)", self.registration_number, description, log.cost)
        return log

    def set_status(self, status):
        if status not in dict(self.STATUS_CHOICES):
            raise ValidationError({'status': [f'"{status}" is not a valid vehicle status.']})
        self.status = status
        self.save(update_fields=['status', 'updated_at'])

    def release(self, mileage=None):
        """Make the vehicle available again, optionally moving the odometer forward."""
        self.status = self.STATUS_AVAILABLE
        update_fields = ['status', 'updated_at']
        if mileage is not None:
            self.mileage = mileage
            update_fields.append('mileage')
        self.save(update_fields=update_fields)


class MaintenanceLog(models.Model):
    vehicle = models.ForeignKey(Vehicle, on_delete=models.CASCADE, related_name='maintenance_logs')
    date = models.DateField()
    description = models.TextField()
    cost = models.DecimalField(max_digits=12, decimal_places=2, validators=NON_NEGATIVE)
    performed_by = models.CharField(max_length=255, blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-date', '-id']

    def __str__(self):
        return f"{self.vehicle.registration_number} - {self.date}"


class Driver(models.Model):
    STATUS_ACTIVE = 'active'
    STATUS_INACTIVE = 'inactive'
    STATUS_ON_LEAVE = 'on_leave'
    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_INACTIVE, 'Inactive'),
        (STATUS_ON_LEAVE, 'On Leave'),
    ]

    name = models.CharField(max_length=255)
    cnic = models.CharField(max_length=20, unique=True)
    license_number = models.CharField(max_length=50)
    phone = models.CharField(max_length=30)
    email = models.EmailField(blank=True, default='')
    address = models.TextField(blank=True, default='')
    emergency_contact_name = models.CharField(max_length=255, blank=True, default='')
    emergency_contact_phone = models.CharField(max_length=30, blank=True, default='')
    emergency_contact_relation = models.CharField(max_length=50, blank=True, default='')
    assigned_vehicle = models.ForeignKey(
        Vehicle, on_delete=models.SET_NULL, null=True, blank=True, related_name='assigned_drivers'
    )
    local_daily_rate = models.DecimalField(max_digits=12, decimal_places=2, default=1000, validators=NON_NEGATIVE)
    outstation_daily_rate = models.DecimalField(max_digits=12, decimal_places=2, default=1500, validators=NON_NEGATIVE)
    overtime_threshold_hours = models.DecimalField(max_digits=5, decimal_places=2, default=12, validators=NON_NEGATIVE)
    overtime_hourly_rate = models.DecimalField(max_digits=12, decimal_places=2, default=200, validators=NON_NEGATIVE)
    monthly_parking_allowance = models.DecimalField(max_digits=12, decimal_places=2, default=2000, validators=NON_NEGATIVE)
    night_food_allowance = models.DecimalField(max_digits=12, decimal_places=2, default=500, validators=NON_NEGATIVE)
    outstation_allowance = models.DecimalField(max_digits=12, decimal_places=2, default=1000, validators=NON_NEGATIVE)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_ACTIVE)
    joining_date = models.DateField()
    notes = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return self.name

    def settlement_rates(self):
        return DriverRates(
            local_daily_rate=to_decimal(self.local_daily_rate),
            outstation_daily_rate=to_decimal(self.outstation_daily_rate),
            overtime_threshold_hours=to_decimal(self.overtime_threshold_hours),
            overtime_hourly_rate=to_decimal(self.overtime_hourly_rate),
        )

    def calculate_allowance(self, overtime_hours=0, food_nights=0, outstation_nights=0, parking_amount=0):
        """Price a driver's allowance claims using this driver's rates."""
        overtime = round_currency(to_decimal(overtime_hours) * to_decimal(self.overtime_hourly_rate))
        food = round_currency(to_decimal(food_nights) * to_decimal(self.night_food_allowance))
        outstation = round_currency(to_decimal(outstation_nights) * to_decimal(self.outstation_allowance))
        parking = round_currency(parking_amount)
        return {
            'overtime_amount': overtime,
            'food_amount': food,
            'outstation_amount': outstation,
            'parking_amount': parking,
            'total_amount': overtime + food + outstation + parking,
        }


class DriverMonthlyExpense(models.Model):
    driver = models.ForeignKey(Driver, on_delete=models.CASCADE, related_name='monthly_expenses')
    month = models.DateField(help_text="Stored as the first day of the month")
    overtime_hours = models.DecimalField(max_digits=6, decimal_places=2, default=0, validators=NON_NEGATIVE)
    overtime_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0, editable=False)
    food_allowance_nights = models.PositiveIntegerField(default=0)
    food_allowance_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0, editable=False)
    outstation_nights = models.PositiveIntegerField(default=0)
    outstation_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0, editable=False)
    parking_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0, validators=NON_NEGATIVE)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0, editable=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-month']
        constraints = [
            models.UniqueConstraint(fields=['driver', 'month'], name='unique_driver_month_expense'),
        ]

    def __str__(self):
        return f"{self.driver.name} - {self.month:%b %Y}"

    def save(self, *args, **kwargs):
        if self.month:
            self.month = self.month.replace(day=1)
        amounts = self.driver.calculate_allowance(
            overtime_hours=self.overtime_hours,
            food_nights=self.food_allowance_nights,
            outstation_nights=self.outstation_nights,
            parking_amount=self.parking_amount,
        )
        self.overtime_amount = amounts['overtime_amount']
        self.food_allowance_amount = amounts['food_amount']
        self.outstation_amount = amounts['outstation_amount']
        self.total_amount = amounts['total_amount']
        super().save(*args, **kwargs)


class OutsourcedVehicle(models.Model):
    """A vehicle rented in from a vendor under a contract, with its payable."""

    STATUS_ACTIVE = 'active'
    STATUS_RETURNED = 'returned'
    STATUS_EXTENDED = 'extended'
    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_RETURNED, 'Returned'),
        (STATUS_EXTENDED, 'Extended'),
    ]

    DERIVED_FIELDS = ('balance_amount',)

    registration_number = models.CharField(max_length=30)
    make = models.CharField(max_length=100)
    model = models.CharField(max_length=100)
    year = models.PositiveIntegerField()
    vendor_name = models.CharField(max_length=255)
    vendor_phone = models.CharField(max_length=30, blank=True, default='')
    vendor_email = models.EmailField(blank=True, default='')
    vendor_address = models.TextField(blank=True, default='')
    daily_rate = models.DecimalField(max_digits=12, decimal_places=2, validators=NON_NEGATIVE)
    security_deposit = models.DecimalField(max_digits=12, decimal_places=2, default=0, validators=NON_NEGATIVE)
    contract_start_date = models.DateField()
    contract_end_date = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_ACTIVE)
    total_usage_days = models.PositiveIntegerField(default=0)
    total_payable = models.DecimalField(max_digits=12, decimal_places=2, default=0, validators=NON_NEGATIVE)
    paid_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0, validators=NON_NEGATIVE)
    balance_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0, editable=False)
    notes = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.registration_number} from {self.vendor_name}"

    def save(self, *args, **kwargs):
        self.balance_amount = round_currency(to_decimal(self.total_payable) - to_decimal(self.paid_amount))
        update_fields = kwargs.get('update_fields')
        if update_fields is not None:
            kwargs['update_fields'] = set(update_fields) | set(self.DERIVED_FIELDS)
        super().save(*args, **kwargs)

    def update_payment(self, paid_amount):
        self.paid_amount = to_decimal(paid_amount)
        self.save()
        logger.info(
            "Outsourced vehicle %s paid %s of %s", self.registration_number, self.paid_amount, self.total_payable
        )


class Booking(models.Model):
    STATUS_CONFIRMED = 'confirmed'
    STATUS_IN_PROGRESS = 'in_progress'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'
    STATUS_CHOICES = [
        (STATUS_CONFIRMED, 'Confirmed'),
        (STATUS_IN_PROGRESS, 'In Progress'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]
    ACTIVE_STATUSES = (STATUS_CONFIRMED, STATUS_IN_PROGRESS)

    PAYMENT_UNPAID = 'unpaid'
    PAYMENT_PARTIAL = 'partial'
    PAYMENT_PAID = 'paid'
    PAYMENT_STATUS_CHOICES = [
        (PAYMENT_UNPAID, 'Unpaid'),
        (PAYMENT_PARTIAL, 'Partial'),
        (PAYMENT_PAID, 'Paid'),
    ]

    RENTAL_OWN = 'Own'
    RENTAL_FROM_VENDOR = 'Outsourced From Vendor'
    RENTAL_TO_CLIENT = 'Outsourced To Client'
    RENTAL_TYPE_CHOICES = [
        (RENTAL_OWN, 'Own'),
        (RENTAL_FROM_VENDOR, 'Outsourced From Vendor'),
        (RENTAL_TO_CLIENT, 'Outsourced To Client'),
    ]

    EXPENSE_FIELDS = {
        'fuel': 'expense_fuel',
        'toll': 'expense_toll',
        'maintenance': 'expense_maintenance',
        'other': 'expense_other',
    }
    ALLOWANCE_FIELDS = {
        'overtime_hours': 'allowance_overtime_hours',
        'overtime_amount': 'allowance_overtime_amount',
        'food_nights': 'allowance_food_nights',
        'food_amount': 'allowance_food_amount',
        'outstation_nights': 'allowance_outstation_nights',
        'outstation_amount': 'allowance_outstation_amount',
        'parking': 'allowance_parking',
    }

    # Written by save() on every create and update.
    DERIVED_FIELDS = (
        'total_days', 'rent_per_day', 'total_rent', 'overtime_hours',
        'driver_daily_rate', 'driver_overtime_amount', 'driver_charges_total',
        'vendor_daily_rate', 'vendor_charges_total',
        'tax_deduction_amount', 'final_amount', 'total_amount',
        'mileage_total', 'expenses_total', 'allowance_total',
        'balance_amount', 'payment_status', 'updated_at',
    )

    booking_number = models.CharField(max_length=20, unique=True, editable=False)
    customer = models.ForeignKey(Customer, on_delete=models.PROTECT, related_name='bookings')
    vehicle = models.ForeignKey(Vehicle, on_delete=models.PROTECT, null=True, blank=True, related_name='bookings')
    outsourced_vehicle = models.ForeignKey(
        OutsourcedVehicle, on_delete=models.SET_NULL, null=True, blank=True, related_name='bookings'
    )
    driver = models.ForeignKey(Driver, on_delete=models.PROTECT, null=True, blank=True, related_name='bookings')
    showroom_person = models.CharField(max_length=255, blank=True, default='')
    route_name = models.CharField(max_length=255, blank=True, default='')
    showroom_contact_name = models.CharField(max_length=255, blank=True, default='')
    showroom_contact_phone = models.CharField(max_length=30, blank=True, default='')
    booking_contact_name = models.CharField(max_length=255, blank=True, default='')
    booking_contact_phone = models.CharField(max_length=30, blank=True, default='')
    rental_type = models.CharField(max_length=30, choices=RENTAL_TYPE_CHOICES, default=RENTAL_OWN)
    is_outstation = models.BooleanField(default=False)
    start_date = models.DateField()
    end_date = models.DateField()
    actual_return_date = models.DateField(null=True, blank=True)

    # Duty hours
    scheduled_duty_hours = models.DecimalField(max_digits=6, decimal_places=2, default=12)
    actual_duty_hours = models.DecimalField(max_digits=6, decimal_places=2, default=0)
    overtime_hours = models.DecimalField(max_digits=6, decimal_places=2, default=0, editable=False)

    # Settlement
    total_days = models.IntegerField(default=0, editable=False)
    rent_per_day = models.DecimalField(max_digits=12, decimal_places=2, default=0, editable=False)
    total_rent = models.DecimalField(max_digits=12, decimal_places=2, default=0, editable=False)
    driver_daily_rate = models.DecimalField(max_digits=12, decimal_places=2, default=0, editable=False)
    driver_overtime_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0, editable=False)
    driver_charges_total = models.DecimalField(max_digits=12, decimal_places=2, default=0, editable=False)
    vendor_daily_rate = models.DecimalField(max_digits=12, decimal_places=2, null=True, editable=False)
    vendor_charges_total = models.DecimalField(max_digits=12, decimal_places=2, null=True, editable=False)
    tax_deduction_percentage = models.DecimalField(
        max_digits=5, decimal_places=2, default=0,
        validators=[MinValueValidator(Decimal('0')), MaxValueValidator(Decimal('100'))],
    )
    tax_deduction_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0, editable=False)
    final_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0, editable=False)

    # Mileage
    mileage_start = models.PositiveIntegerField(default=0)
    mileage_end = models.PositiveIntegerField(null=True, blank=True)
    mileage_total = models.IntegerField(default=0, editable=False)

    # Trip expenses
    expense_fuel = models.DecimalField(max_digits=12, decimal_places=2, default=0, validators=NON_NEGATIVE)
    expense_toll = models.DecimalField(max_digits=12, decimal_places=2, default=0, validators=NON_NEGATIVE)
    expense_maintenance = models.DecimalField(max_digits=12, decimal_places=2, default=0, validators=NON_NEGATIVE)
    expense_other = models.DecimalField(max_digits=12, decimal_places=2, default=0, validators=NON_NEGATIVE)
    expenses_total = models.DecimalField(max_digits=12, decimal_places=2, default=0, editable=False)

    # Driver allowance claimed for the trip
    allowance_overtime_hours = models.DecimalField(max_digits=6, decimal_places=2, default=0, validators=NON_NEGATIVE)
    allowance_overtime_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0, validators=NON_NEGATIVE)
    allowance_food_nights = models.PositiveIntegerField(default=0)
    allowance_food_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0, validators=NON_NEGATIVE)
    allowance_outstation_nights = models.PositiveIntegerField(default=0)
    allowance_outstation_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0, validators=NON_NEGATIVE)
    allowance_parking = models.DecimalField(max_digits=12, decimal_places=2, default=0, validators=NON_NEGATIVE)
    allowance_total = models.DecimalField(max_digits=12, decimal_places=2, default=0, editable=False)

    # Payment
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0, editable=False)
    received_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0, validators=NON_NEGATIVE)
    balance_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0, editable=False)
    security_deposit = models.DecimalField(max_digits=12, decimal_places=2, default=0, validators=NON_NEGATIVE)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_CONFIRMED)
    payment_status = models.CharField(
        max_length=10, choices=PAYMENT_STATUS_CHOICES, default=PAYMENT_UNPAID, editable=False
    )
    notes = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at', '-id']

    def __str__(self):
        return self.booking_number or f"Booking #{self.pk}"

    @property
    def driver_charges(self):
        return DriverCharges(
            daily_rate=self.driver_daily_rate,
            overtime_hours=self.overtime_hours,
            overtime_amount=self.driver_overtime_amount,
            total_amount=self.driver_charges_total,
        )

    @property
    def vendor_charges(self):
        if self.vendor_charges_total is None:
            return None
        return VendorCharges(daily_rate=self.vendor_daily_rate, total_amount=self.vendor_charges_total)

    @property
    def is_active(self):
        return self.status in self.ACTIVE_STATUSES

    def settlement_terms(self):
        return SettlementTerms(
            start_date=self.start_date,
            end_date=self.end_date,
            is_outstation=bool(self.is_outstation),
            actual_duty_hours=to_decimal(self.actual_duty_hours),
            mileage_start=self.mileage_start or 0,
            mileage_end=self.mileage_end,
            tax_deduction_percentage=to_decimal(self.tax_deduction_percentage),
        )

    def validation_errors(self):
        vehicle_rates = self.vehicle.settlement_rates() if self.vehicle_id else None
        errors = settlement_errors(self.settlement_terms(), vehicle_rates)
        if not self.customer_id:
            errors['customer'] = ['A customer is required.']
        if to_decimal(self.received_amount) < 0:
            errors['received_amount'] = ['Received amount cannot be negative.']
        return errors

    def settle(self):
        """Validate the booking's inputs and copy a fresh settlement onto the row."""
        errors = self.validation_errors()
        if errors:
            raise ValidationError(errors)

        driver_rates = self.driver.settlement_rates() if self.driver_id else None
        result = compute_settlement(self.settlement_terms(), self.vehicle.settlement_rates(), driver_rates)

        self.total_days = result.total_days
        self.rent_per_day = result.rent_per_day
        self.total_rent = result.total_rent
        self.overtime_hours = result.driver_charges.overtime_hours
        self.driver_daily_rate = result.driver_charges.daily_rate
        self.driver_overtime_amount = result.driver_charges.overtime_amount
        self.driver_charges_total = result.driver_charges.total_amount
        if result.vendor_charges is None:
            self.vendor_daily_rate = None
            self.vendor_charges_total = None
        else:
            self.vendor_daily_rate = result.vendor_charges.daily_rate
            self.vendor_charges_total = result.vendor_charges.total_amount
        self.tax_deduction_percentage = result.tax_deduction_percentage
        self.tax_deduction_amount = result.tax_deduction_amount
        self.final_amount = result.final_amount
        self.total_amount = result.final_amount
        return result

    def recalculate_totals(self):
        self.mileage_total = mileage_used(self.mileage_start, self.mileage_end)
        self.expenses_total = round_currency(
            sum(to_decimal(getattr(self, name)) for name in self.EXPENSE_FIELDS.values())
        )
        self.allowance_total = round_currency(
            to_decimal(self.allowance_overtime_amount)
            + to_decimal(self.allowance_food_amount)
            + to_decimal(self.allowance_outstation_amount)
            + to_decimal(self.allowance_parking)
        )
        total = to_decimal(self.total_amount)
        received = to_decimal(self.received_amount)
        self.balance_amount = round_currency(total - received)
        if received == 0:
            self.payment_status = self.PAYMENT_UNPAID
        elif received >= total:
            self.payment_status = self.PAYMENT_PAID
        else:
            self.payment_status = self.PAYMENT_PARTIAL

    def status_transition_errors(self):
        if self._state.adding or not self.pk:
            return {}
        previous = Booking.objects.filter(pk=self.pk).values_list('status', flat=True).first()
        if previous == self.STATUS_CANCELLED and self.status == self.STATUS_COMPLETED:
            return {'status': ['A cancelled booking cannot be completed.']}
        if previous == self.STATUS_COMPLETED and self.status == self.STATUS_CANCELLED:
            return {'status': ['A completed booking cannot be cancelled.']}
        return {}

    def save(self, *args, **kwargs):
        errors = self.status_transition_errors()
        if errors:
            raise ValidationError(errors)
        self.settle()
        self.recalculate_totals()

        update_fields = kwargs.get('update_fields')
        if update_fields is not None:
            kwargs['update_fields'] = set(update_fields) | set(self.DERIVED_FIELDS)

        with transaction.atomic():
            if self._state.adding and not self.booking_number:
                self.booking_number = SequenceCounter.next_booking_number()
            super().save(*args, **kwargs)

    def complete(self, actual_return_date=None, end_mileage=None, expenses=None, driver_allowance=None):
        """Close the booking: record the return, trip costs, and free the vehicle."""
        if self.status == self.STATUS_CANCELLED:
            raise ValidationError({'status': ['A cancelled booking cannot be completed.']})

        with transaction.atomic():
            self.actual_return_date = actual_return_date or timezone.localdate()
            if end_mileage is not None:
                self.mileage_end = end_mileage
            for key, value in (expenses or {}).items():
                if key not in self.EXPENSE_FIELDS:
                    raise ValidationError({'expenses': [f'Unknown expense "{key}".']})
                setattr(self, self.EXPENSE_FIELDS[key], to_decimal(value))
            self._apply_driver_allowance(driver_allowance or {})
            self.status = self.STATUS_COMPLETED
            self.save()
            if self.vehicle_id:
                self.vehicle.release(mileage=self.mileage_end)

        logger.info(
            "Booking %s completed; final amount %s, received %s",
            self.booking_number, self.total_amount, self.received_amount,
        )
        return self

    def _apply_driver_allowance(self, allowance):
        for key, value in allowance.items():
            if key not in self.ALLOWANCE_FIELDS:
                raise ValidationError({'driver_allowance': [f'Unknown allowance "{key}".']})
            if key.endswith('_nights'):
                nights = to_decimal(value)
                if nights < 0 or nights != nights.to_integral_value():
                    raise ValidationError({'driver_allowance': [f'"{key}" must be a whole number of nights.']})
                value = int(nights)
            else:
                value = to_decimal(value)
            setattr(self, self.ALLOWANCE_FIELDS[key], value)

        if not self.driver_id:
            return
        priced = self.driver.calculate_allowance(
            overtime_hours=self.allowance_overtime_hours,
            food_nights=self.allowance_food_nights,
            outstation_nights=self.allowance_outstation_nights,
        )
        # Amounts the caller left out are priced from the driver's rates.
        for count_key, amount_key in (
            ('overtime_hours', 'overtime_amount'),
            ('food_nights', 'food_amount'),
            ('outstation_nights', 'outstation_amount'),
        ):
            if count_key in allowance and amount_key not in allowance:
                setattr(self, self.ALLOWANCE_FIELDS[amount_key], priced[amount_key])

    def cancel(self):
        if self.status == self.STATUS_COMPLETED:
            raise ValidationError({'status': ['A completed booking cannot be cancelled.']})
        with transaction.atomic():
            self.status = self.STATUS_CANCELLED
            self.save()
            if self.vehicle_id:
                self.vehicle.release()
        logger.info("Booking %s cancelled", self.booking_number)
        return self

    def record_payment(self, received_amount, tax_deduction_percentage=None):
        self.received_amount = to_decimal(received_amount)
        if tax_deduction_percentage is not None:
            self.tax_deduction_percentage = to_decimal(tax_deduction_percentage)
        self.save()
        logger.info(
            "Booking %s received %s of %s (%s)",
            self.booking_number, self.received_amount, self.total_amount, self.payment_status,
        )
        return self

    def sync_receivable(self):
        """Create or refresh the rental ledger entry that mirrors this booking."""
        with transaction.atomic():
            payment = (
                self.payments.select_for_update()
                .filter(payment_type=Payment.TYPE_RECEIVABLE, category=Payment.CATEGORY_RENTAL)
                .first()
            )
            if payment is None:
                payment = Payment(
                    booking=self,
                    payment_type=Payment.TYPE_RECEIVABLE,
                    category=Payment.CATEGORY_RENTAL,
                    description=f"Rental payment for booking {self.booking_number}",
                )
            payment.customer = self.customer
            payment.amount = self.total_amount
            payment.paid_amount = self.received_amount
            if not payment.due_date:
                payment.due_date = self.end_date
            payment.save()
        return payment


class Payment(models.Model):
    """Ledger entry for money owed to or by the business."""

    TYPE_RECEIVABLE = 'Receivable'
    TYPE_PAYABLE = 'Payable'
    TYPE_CHOICES = [
        (TYPE_RECEIVABLE, 'Receivable'),
        (TYPE_PAYABLE, 'Payable'),
    ]

    CATEGORY_RENTAL = 'Rental Payment'
    CATEGORY_SECURITY_DEPOSIT = 'Security Deposit'
    CATEGORY_VENDOR = 'Vendor Payment'
    CATEGORY_DRIVER_SALARY = 'Driver Salary'
    CATEGORY_REIMBURSEMENT = 'Expense Reimbursement'
    CATEGORY_OTHER = 'Other'
    CATEGORY_CHOICES = [
        (CATEGORY_RENTAL, 'Rental Payment'),
        (CATEGORY_SECURITY_DEPOSIT, 'Security Deposit'),
        (CATEGORY_VENDOR, 'Vendor Payment'),
        (CATEGORY_DRIVER_SALARY, 'Driver Salary'),
        (CATEGORY_REIMBURSEMENT, 'Expense Reimbursement'),
        (CATEGORY_OTHER, 'Other'),
    ]

    STATUS_PENDING = 'pending'
    STATUS_PAID = 'paid'
    STATUS_UNPAID = 'unpaid'
    STATUS_BALANCE = 'balance'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_PAID, 'Paid'),
        (STATUS_UNPAID, 'Unpaid'),
        (STATUS_BALANCE, 'Balance'),
    ]
    # Set explicitly by staff and never recalculated.
    MANUAL_STATUSES = (STATUS_UNPAID, STATUS_BALANCE)
    OUTSTANDING_STATUSES = (STATUS_PENDING, STATUS_UNPAID, STATUS_BALANCE)

    METHOD_CASH = 'cash'
    METHOD_CHOICES = [
        (METHOD_CASH, 'Cash'),
    ]

    DERIVED_FIELDS = ('balance_amount', 'status', 'updated_at')

    booking = models.ForeignKey(Booking, on_delete=models.SET_NULL, null=True, blank=True, related_name='payments')
    customer = models.ForeignKey(Customer, on_delete=models.SET_NULL, null=True, blank=True, related_name='payments')
    payment_type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    category = models.CharField(max_length=30, choices=CATEGORY_CHOICES)
    description = models.CharField(max_length=255)
    amount = models.DecimalField(max_digits=12, decimal_places=2, validators=NON_NEGATIVE)
    paid_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0, validators=NON_NEGATIVE)
    balance_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0, editable=False)
    due_date = models.DateField(null=True, blank=True)
    payment_date = models.DateField(null=True, blank=True)
    payment_method = models.CharField(max_length=20, choices=METHOD_CHOICES, default=METHOD_CASH)
    reference_number = models.CharField(max_length=100, blank=True, default='')
    bank_account_number = models.CharField(max_length=50, blank=True, default='')
    bank_account_title = models.CharField(max_length=255, blank=True, default='')
    bank_name = models.CharField(max_length=255, blank=True, default='')
    bank_branch_code = models.CharField(max_length=20, blank=True, default='')
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_PENDING)
    notes = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at', '-id']

    def __str__(self):
        return f"{self.payment_type} {self.amount} - {self.description}"

    def recalculate_balance(self):
        amount = to_decimal(self.amount)
        paid = to_decimal(self.paid_amount)
        self.balance_amount = round_currency(amount - paid)
        if self.status in self.MANUAL_STATUSES:
            return
        if paid == 0:
            self.status = self.STATUS_PENDING
        elif paid >= amount:
            self.status = self.STATUS_PAID
        else:
            # Part-paid entries stay pending; the balance shows what is left.
            self.status = self.STATUS_PENDING

    def save(self, *args, **kwargs):
        self.recalculate_balance()
        update_fields = kwargs.get('update_fields')
        if update_fields is not None:
            kwargs['update_fields'] = set(update_fields) | set(self.DERIVED_FIELDS)
        super().save(*args, **kwargs)

    def record(self, paid_amount, payment_date=None, payment_method=None, reference_number=None):
        """Add an instalment to the paid amount under a row lock."""
        instalment = to_decimal(paid_amount)
        if instalment <= 0:
            raise ValidationError({'paid_amount': ['Paid amount must be greater than zero.']})

        with transaction.atomic():
            locked = Payment.objects.select_for_update().get(pk=self.pk)
            locked.paid_amount = to_decimal(locked.paid_amount) + instalment
            locked.payment_date = payment_date or timezone.localdate()
            if payment_method:
                locked.payment_method = payment_method
            if reference_number:
                locked.reference_number = reference_number
            locked.save()

        self.refresh_from_db()
        logger.info("Payment %s recorded %s; balance now %s", self.pk, instalment, self.balance_amount)
        return self


class Expense(models.Model):
    CATEGORY_FUEL = 'Fuel'
    CATEGORY_TOLL = 'Toll'
    CATEGORY_MAINTENANCE = 'Maintenance'
    CATEGORY_PARKING = 'Parking'
    CATEGORY_FOOD = 'Food'
    CATEGORY_OTHER = 'Other'
    CATEGORY_CHOICES = [
        (CATEGORY_FUEL, 'Fuel'),
        (CATEGORY_TOLL, 'Toll'),
        (CATEGORY_MAINTENANCE, 'Maintenance'),
        (CATEGORY_PARKING, 'Parking'),
        (CATEGORY_FOOD, 'Food'),
        (CATEGORY_OTHER, 'Other'),
    ]

    METHOD_CHOICES = [
        ('Cash', 'Cash'),
        ('Card', 'Card'),
        ('Bank Transfer', 'Bank Transfer'),
        ('Cheque', 'Cheque'),
    ]

    STATUS_PENDING = 'pending'
    STATUS_APPROVED = 'approved'
    STATUS_REJECTED = 'rejected'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_APPROVED, 'Approved'),
        (STATUS_REJECTED, 'Rejected'),
    ]

    booking = models.ForeignKey(Booking, on_delete=models.SET_NULL, null=True, blank=True, related_name='expense_records')
    vehicle = models.ForeignKey(Vehicle, on_delete=models.SET_NULL, null=True, blank=True, related_name='expenses')
    driver = models.ForeignKey(Driver, on_delete=models.SET_NULL, null=True, blank=True, related_name='expenses')
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES)
    description = models.CharField(max_length=255)
    amount = models.DecimalField(max_digits=12, decimal_places=2, validators=NON_NEGATIVE)
    date = models.DateField()
    receipt_number = models.CharField(max_length=100, blank=True, default='')
    vendor = models.CharField(max_length=255, blank=True, default='')
    payment_method = models.CharField(max_length=20, choices=METHOD_CHOICES, default='Cash')
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default=STATUS_PENDING)
    approved_by = models.CharField(max_length=150, blank=True, default='')
    approval_date = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-date', '-id']

    def __str__(self):
        return f"{self.category}: {self.description} ({self.amount})"

    def _review(self, status, reviewer, notes=None):
        self.status = status
        self.approved_by = getattr(reviewer, 'username', None) or str(reviewer or '')
        self.approval_date = timezone.now()
        if notes is not None:
            self.notes = notes
        self.save()
        logger.info("Expense %s %s by %s", self.pk, status, self.approved_by)
        return self

    def approve(self, reviewer):
        return self._review(self.STATUS_APPROVED, reviewer)

    def reject(self, reviewer, reason=None):
        return self._review(self.STATUS_REJECTED, reviewer, notes=reason)
