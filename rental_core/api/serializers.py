# api/serializers.py
from rest_framework import serializers

from rentals.models import (
    Booking,
    Customer,
    Driver,
    DriverMonthlyExpense,
    Expense,
    MaintenanceLog,
    OutsourcedVehicle,
    Payment,
    Vehicle,
    customer_identity_errors,
)


class CustomerSerializer(serializers.ModelSerializer):
    class Meta:
        model = Customer
        fields = '__all__'

    def validate(self, attrs):
        def current(name, default=''):
            if name in attrs:
                return attrs[name]
            if self.instance is not None:
                return getattr(self.instance, name)
            return default

        errors = customer_identity_errors(
            current('customer_type', Customer.TYPE_INDIVIDUAL),
            current('cnic'),
            current('license_number'),
            current('company_registration'),
        )
        if errors:
            raise serializers.ValidationError(errors)
        return attrs


class MaintenanceLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = MaintenanceLog
        fields = '__all__'
        read_only_fields = ('vehicle',)


class VehicleSerializer(serializers.ModelSerializer):
    maintenance_logs = MaintenanceLogSerializer(many=True, read_only=True)
    total_maintenance_cost = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)
    has_vendor_info = serializers.BooleanField(read_only=True)

    class Meta:
        model = Vehicle
        fields = '__all__'


class VehicleStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Vehicle.STATUS_CHOICES)


class DriverSerializer(serializers.ModelSerializer):
    assigned_vehicle_registration = serializers.CharField(
        source='assigned_vehicle.registration_number', read_only=True, default=None
    )

    class Meta:
        model = Driver
        fields = '__all__'


class DriverMonthlyExpenseSerializer(serializers.ModelSerializer):
    driver_name = serializers.CharField(source='driver.name', read_only=True)

    class Meta:
        model = DriverMonthlyExpense
        fields = '__all__'
        read_only_fields = ('driver',)
        # The view upserts by driver and month.
        validators = []


class OutsourcedVehicleSerializer(serializers.ModelSerializer):
    class Meta:
        model = OutsourcedVehicle
        fields = '__all__'


class OutsourcedPaymentSerializer(serializers.Serializer):
    paid_amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)


class BookingSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source='customer.name', read_only=True)
    vehicle_registration = serializers.CharField(
        source='vehicle.registration_number', read_only=True, default=None
    )
    driver_name = serializers.CharField(source='driver.name', read_only=True, default=None)

    class Meta:
        model = Booking
        fields = '__all__'

    def to_representation(self, instance):
        data = super().to_representation(instance)
        data['mileage'] = {
            'start': instance.mileage_start,
            'end': instance.mileage_end,
            'total': instance.mileage_total,
        }
        data['expenses'] = {
            key: getattr(instance, field_name) for key, field_name in Booking.EXPENSE_FIELDS.items()
        }
        data['expenses']['total'] = instance.expenses_total
        data['driver_allowance'] = {
            key: getattr(instance, field_name) for key, field_name in Booking.ALLOWANCE_FIELDS.items()
        }
        data['driver_allowance']['total'] = instance.allowance_total
        data['driver_charges'] = instance.driver_charges.as_dict()
        vendor_charges = instance.vendor_charges
        if vendor_charges is not None:
            data['vendor_charges'] = vendor_charges.as_dict()
        data['tax_deduction'] = {
            'percentage': instance.tax_deduction_percentage,
            'amount': instance.tax_deduction_amount,
        }
        data['payment'] = {
            'total_amount': instance.total_amount,
            'received_amount': instance.received_amount,
            'balance_amount': instance.balance_amount,
            'status': instance.payment_status,
        }
        return data


class BookingQuoteSerializer(serializers.Serializer):
    vehicle = serializers.PrimaryKeyRelatedField(queryset=Vehicle.objects.all(), required=False, allow_null=True)
    driver = serializers.PrimaryKeyRelatedField(queryset=Driver.objects.all(), required=False, allow_null=True)
    start_date = serializers.DateField()
    end_date = serializers.DateField()
    is_outstation = serializers.BooleanField(required=False, default=False)
    actual_duty_hours = serializers.DecimalField(max_digits=6, decimal_places=2, required=False, default=0)
    mileage_start = serializers.IntegerField(required=False, default=0)
    mileage_end = serializers.IntegerField(required=False, allow_null=True, default=None)
    tax_deduction_percentage = serializers.DecimalField(max_digits=5, decimal_places=2, required=False, default=0)


class CompleteBookingSerializer(serializers.Serializer):
    actual_return_date = serializers.DateField(required=False, allow_null=True)
    end_mileage = serializers.IntegerField(required=False, allow_null=True, min_value=0)
    expenses = serializers.DictField(
        child=serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0), required=False
    )
    driver_allowance = serializers.DictField(
        child=serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0), required=False
    )


class BookingPaymentSerializer(serializers.Serializer):
    received_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    tax_deduction_percentage = serializers.DecimalField(
        max_digits=5, decimal_places=2, required=False, allow_null=True
    )


class PaymentSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source='customer.name', read_only=True, default=None)
    booking_number = serializers.CharField(source='booking.booking_number', read_only=True, default=None)

    class Meta:
        model = Payment
        fields = '__all__'


class RecordPaymentSerializer(serializers.Serializer):
    paid_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    payment_date = serializers.DateField(required=False, allow_null=True)
    payment_method = serializers.ChoiceField(choices=Payment.METHOD_CHOICES, required=False)
    reference_number = serializers.CharField(required=False, allow_blank=True)


class ExpenseSerializer(serializers.ModelSerializer):
    class Meta:
        model = Expense
        fields = '__all__'
        read_only_fields = ('status', 'approved_by', 'approval_date')


class ExpenseRejectSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True)
