from django.contrib import admin

from .models import (
    Booking,
    Customer,
    Driver,
    DriverMonthlyExpense,
    Expense,
    MaintenanceLog,
    OutsourcedVehicle,
    Payment,
    SequenceCounter,
    Vehicle,
)


class MaintenanceLogInline(admin.TabularInline):
    model = MaintenanceLog
    extra = 0


class DriverMonthlyExpenseInline(admin.TabularInline):
    model = DriverMonthlyExpense
    extra = 0
    readonly_fields = ('overtime_amount', 'food_allowance_amount', 'outstation_amount', 'total_amount')


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ('name', 'customer_type', 'phone', 'status', 'total_bookings', 'outstanding_balance')
    list_filter = ('customer_type', 'status')
    search_fields = ('name', 'cnic', 'company_registration', 'phone', 'email')
    readonly_fields = ('total_bookings', 'total_amount_paid', 'outstanding_balance')


@admin.register(Vehicle)
class VehicleAdmin(admin.ModelAdmin):
    list_display = ('registration_number', 'make', 'model', 'vehicle_type', 'status', 'daily_rate')
    list_filter = ('vehicle_type', 'status')
    search_fields = ('registration_number', 'make', 'model')
    inlines = [MaintenanceLogInline]


@admin.register(Driver)
class DriverAdmin(admin.ModelAdmin):
    list_display = ('name', 'cnic', 'phone', 'status', 'local_daily_rate', 'outstation_daily_rate')
    list_filter = ('status',)
    search_fields = ('name', 'cnic', 'license_number')
    inlines = [DriverMonthlyExpenseInline]


@admin.register(OutsourcedVehicle)
class OutsourcedVehicleAdmin(admin.ModelAdmin):
    list_display = ('registration_number', 'vendor_name', 'status', 'total_payable', 'paid_amount', 'balance_amount')
    list_filter = ('status',)
    search_fields = ('registration_number', 'vendor_name')
    readonly_fields = ('balance_amount',)


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = (
        'booking_number', 'customer', 'vehicle', 'start_date', 'end_date',
        'total_amount', 'received_amount', 'payment_status', 'status',
    )
    list_filter = ('status', 'payment_status', 'rental_type', 'is_outstation')
    search_fields = ('booking_number', 'customer__name', 'vehicle__registration_number')
    autocomplete_fields = ('customer', 'vehicle', 'driver')
    date_hierarchy = 'start_date'
    readonly_fields = (
        'booking_number', 'total_days', 'rent_per_day', 'total_rent', 'overtime_hours',
        'driver_daily_rate', 'driver_overtime_amount', 'driver_charges_total',
        'vendor_daily_rate', 'vendor_charges_total', 'tax_deduction_amount', 'final_amount',
        'mileage_total', 'expenses_total', 'allowance_total', 'total_amount',
        'balance_amount', 'payment_status',
    )


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ('description', 'payment_type', 'category', 'amount', 'paid_amount', 'balance_amount', 'status')
    list_filter = ('payment_type', 'category', 'status')
    search_fields = ('description', 'reference_number', 'customer__name')
    readonly_fields = ('balance_amount',)


@admin.register(Expense)
class ExpenseAdmin(admin.ModelAdmin):
    list_display = ('description', 'category', 'amount', 'date', 'status', 'approved_by')
    list_filter = ('category', 'status', 'payment_method')
    search_fields = ('description', 'receipt_number', 'vendor')


@admin.register(SequenceCounter)
class SequenceCounterAdmin(admin.ModelAdmin):
    list_display = ('name', 'last_value')
