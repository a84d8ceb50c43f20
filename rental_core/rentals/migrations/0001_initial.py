from decimal import Decimal

import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


def seed_booking_sequence(apps, schema_editor):
    SequenceCounter = apps.get_model('rentals', 'SequenceCounter')
    SequenceCounter.objects.get_or_create(name='booking', defaults={'last_value': 0})


NON_NEGATIVE = [django.core.validators.MinValueValidator(Decimal('0'))]


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='SequenceCounter',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=50, unique=True)),
                ('last_value', models.PositiveIntegerField(default=0)),
            ],
        ),
        migrations.CreateModel(
            name='Customer',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('customer_type', models.CharField(choices=[('individual', 'Individual'), ('company', 'Company')], default='individual', max_length=20)),
                ('name', models.CharField(max_length=255)),
                ('cnic', models.CharField(blank=True, default='', max_length=20)),
                ('company_registration', models.CharField(blank=True, default='', max_length=100)),
                ('license_number', models.CharField(blank=True, default='', max_length=50)),
                ('phone', models.CharField(max_length=30)),
                ('email', models.EmailField(blank=True, default='', max_length=254)),
                ('address', models.TextField(blank=True, default='')),
                ('emergency_contact_name', models.CharField(blank=True, default='', max_length=255)),
                ('emergency_contact_phone', models.CharField(blank=True, default='', max_length=30)),
                ('emergency_contact_relation', models.CharField(blank=True, default='', max_length=50)),
                ('credit_limit', models.DecimalField(decimal_places=2, default=0, max_digits=12, validators=NON_NEGATIVE)),
                ('status', models.CharField(choices=[('active', 'Active'), ('inactive', 'Inactive'), ('blacklisted', 'Blacklisted'), ('suspended', 'Suspended')], default='active', max_length=20)),
                ('notes', models.TextField(blank=True, default='')),
                ('total_bookings', models.PositiveIntegerField(default=0, editable=False)),
                ('total_amount_paid', models.DecimalField(decimal_places=2, default=0, editable=False, max_digits=12)),
                ('outstanding_balance', models.DecimalField(decimal_places=2, default=0, editable=False, max_digits=12)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='Vehicle',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('registration_number', models.CharField(max_length=30, unique=True)),
                ('make', models.CharField(max_length=100)),
                ('model', models.CharField(max_length=100)),
                ('year', models.PositiveIntegerField()),
                ('color', models.CharField(blank=True, default='', max_length=50)),
                ('mileage', models.PositiveIntegerField(default=0, help_text='Current odometer reading')),
                ('vehicle_type', models.CharField(choices=[('Company-owned', 'Company-owned'), ('Outsourced-in', 'Outsourced-in'), ('Outsourced-out', 'Outsourced-out')], default='Company-owned', max_length=20)),
                ('vendor_name', models.CharField(blank=True, default='', max_length=255)),
                ('vendor_contact', models.CharField(blank=True, default='', max_length=100)),
                ('vendor_contract_start', models.DateField(blank=True, null=True)),
                ('vendor_contract_end', models.DateField(blank=True, null=True)),
                ('daily_vendor_rate', models.DecimalField(blank=True, decimal_places=2, help_text='Rate paid to the vendor per day; leave empty when there is no vendor.', max_digits=12, null=True, validators=NON_NEGATIVE)),
                ('status', models.CharField(choices=[('available', 'Available'), ('booked', 'Booked'), ('under_maintenance', 'Under Maintenance')], default='available', max_length=20)),
                ('daily_rate', models.DecimalField(decimal_places=2, max_digits=12, validators=NON_NEGATIVE)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['registration_number'],
            },
        ),
        migrations.CreateModel(
            name='MaintenanceLog',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('date', models.DateField()),
                ('description', models.TextField()),
                ('cost', models.DecimalField(decimal_places=2, max_digits=12, validators=NON_NEGATIVE)),
                ('performed_by', models.CharField(blank=True, default='', max_length=255)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('vehicle', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='maintenance_logs', to='rentals.vehicle')),
            ],
            options={
                'ordering': ['-date', '-id'],
            },
        ),
        migrations.CreateModel(
            name='Driver',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=255)),
                ('cnic', models.CharField(max_length=20, unique=True)),
                ('license_number', models.CharField(max_length=50)),
                ('phone', models.CharField(max_length=30)),
                ('email', models.EmailField(blank=True, default='', max_length=254)),
                ('address', models.TextField(blank=True, default='')),
                ('emergency_contact_name', models.CharField(blank=True, default='', max_length=255)),
                ('emergency_contact_phone', models.CharField(blank=True, default='', max_length=30)),
                ('emergency_contact_relation', models.CharField(blank=True, default='', max_length=50)),
                ('local_daily_rate', models.DecimalField(decimal_places=2, default=1000, max_digits=12, validators=NON_NEGATIVE)),
                ('outstation_daily_rate', models.DecimalField(decimal_places=2, default=1500, max_digits=12, validators=NON_NEGATIVE)),
                ('overtime_threshold_hours', models.DecimalField(decimal_places=2, default=12, max_digits=5, validators=NON_NEGATIVE)),
                ('overtime_hourly_rate', models.DecimalField(decimal_places=2, default=200, max_digits=12, validators=NON_NEGATIVE)),
                ('monthly_parking_allowance', models.DecimalField(decimal_places=2, default=2000, max_digits=12, validators=NON_NEGATIVE)),
                ('night_food_allowance', models.DecimalField(decimal_places=2, default=500, max_digits=12, validators=NON_NEGATIVE)),
                ('outstation_allowance', models.DecimalField(decimal_places=2, default=1000, max_digits=12, validators=NON_NEGATIVE)),
                ('status', models.CharField(choices=[('active', 'Active'), ('inactive', 'Inactive'), ('on_leave', 'On Leave')], default='active', max_length=20)),
                ('joining_date', models.DateField()),
                ('notes', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('assigned_vehicle', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='assigned_drivers', to='rentals.vehicle')),
            ],
            options={
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='DriverMonthlyExpense',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('month', models.DateField(help_text='Stored as the first day of the month')),
                ('overtime_hours', models.DecimalField(decimal_places=2, default=0, max_digits=6, validators=NON_NEGATIVE)),
                ('overtime_amount', models.DecimalField(decimal_places=2, default=0, editable=False, max_digits=12)),
                ('food_allowance_nights', models.PositiveIntegerField(default=0)),
                ('food_allowance_amount', models.DecimalField(decimal_places=2, default=0, editable=False, max_digits=12)),
                ('outstation_nights', models.PositiveIntegerField(default=0)),
                ('outstation_amount', models.DecimalField(decimal_places=2, default=0, editable=False, max_digits=12)),
                ('parking_amount', models.DecimalField(decimal_places=2, default=0, max_digits=12, validators=NON_NEGATIVE)),
                ('total_amount', models.DecimalField(decimal_places=2, default=0, editable=False, max_digits=12)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('driver', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='monthly_expenses', to='rentals.driver')),
            ],
            options={
                'ordering': ['-month'],
                'constraints': [models.UniqueConstraint(fields=('driver', 'month'), name='unique_driver_month_expense')],
            },
        ),
        migrations.CreateModel(
            name='OutsourcedVehicle',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('registration_number', models.CharField(max_length=30)),
                ('make', models.CharField(max_length=100)),
                ('model', models.CharField(max_length=100)),
                ('year', models.PositiveIntegerField()),
                ('vendor_name', models.CharField(max_length=255)),
                ('vendor_phone', models.CharField(blank=True, default='', max_length=30)),
                ('vendor_email', models.EmailField(blank=True, default='', max_length=254)),
                ('vendor_address', models.TextField(blank=True, default='')),
                ('daily_rate', models.DecimalField(decimal_places=2, max_digits=12, validators=NON_NEGATIVE)),
                ('security_deposit', models.DecimalField(decimal_places=2, default=0, max_digits=12, validators=NON_NEGATIVE)),
                ('contract_start_date', models.DateField()),
                ('contract_end_date', models.DateField(blank=True, null=True)),
                ('status', models.CharField(choices=[('active', 'Active'), ('returned', 'Returned'), ('extended', 'Extended')], default='active', max_length=20)),
                ('total_usage_days', models.PositiveIntegerField(default=0)),
                ('total_payable', models.DecimalField(decimal_places=2, default=0, max_digits=12, validators=NON_NEGATIVE)),
                ('paid_amount', models.DecimalField(decimal_places=2, default=0, max_digits=12, validators=NON_NEGATIVE)),
                ('balance_amount', models.DecimalField(decimal_places=2, default=0, editable=False, max_digits=12)),
                ('notes', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='Booking',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('booking_number', models.CharField(editable=False, max_length=20, unique=True)),
                ('showroom_person', models.CharField(blank=True, default='', max_length=255)),
                ('route_name', models.CharField(blank=True, default='', max_length=255)),
                ('showroom_contact_name', models.CharField(blank=True, default='', max_length=255)),
                ('showroom_contact_phone', models.CharField(blank=True, default='', max_length=30)),
                ('booking_contact_name', models.CharField(blank=True, default='', max_length=255)),
                ('booking_contact_phone', models.CharField(blank=True, default='', max_length=30)),
                ('rental_type', models.CharField(choices=[('Own', 'Own'), ('Outsourced From Vendor', 'Outsourced From Vendor'), ('Outsourced To Client', 'Outsourced To Client')], default='Own', max_length=30)),
                ('is_outstation', models.BooleanField(default=False)),
                ('start_date', models.DateField()),
                ('end_date', models.DateField()),
                ('actual_return_date', models.DateField(blank=True, null=True)),
                ('scheduled_duty_hours', models.DecimalField(decimal_places=2, default=12, max_digits=6)),
                ('actual_duty_hours', models.DecimalField(decimal_places=2, default=0, max_digits=6)),
                ('overtime_hours', models.DecimalField(decimal_places=2, default=0, editable=False, max_digits=6)),
                ('total_days', models.IntegerField(default=0, editable=False)),
                ('rent_per_day', models.DecimalField(decimal_places=2, default=0, editable=False, max_digits=12)),
                ('total_rent', models.DecimalField(decimal_places=2, default=0, editable=False, max_digits=12)),
                ('driver_daily_rate', models.DecimalField(decimal_places=2, default=0, editable=False, max_digits=12)),
                ('driver_overtime_amount', models.DecimalField(decimal_places=2, default=0, editable=False, max_digits=12)),
                ('driver_charges_total', models.DecimalField(decimal_places=2, default=0, editable=False, max_digits=12)),
                ('vendor_daily_rate', models.DecimalField(decimal_places=2, editable=False, max_digits=12, null=True)),
                ('vendor_charges_total', models.DecimalField(decimal_places=2, editable=False, max_digits=12, null=True)),
                ('tax_deduction_percentage', models.DecimalField(decimal_places=2, default=0, max_digits=5, validators=[django.core.validators.MinValueValidator(Decimal('0')), django.core.validators.MaxValueValidator(Decimal('100'))])),
                ('tax_deduction_amount', models.DecimalField(decimal_places=2, default=0, editable=False, max_digits=12)),
                ('final_amount', models.DecimalField(decimal_places=2, default=0, editable=False, max_digits=12)),
                ('mileage_start', models.PositiveIntegerField(default=0)),
                ('mileage_end', models.PositiveIntegerField(blank=True, null=True)),
                ('mileage_total', models.IntegerField(default=0, editable=False)),
                ('expense_fuel', models.DecimalField(decimal_places=2, default=0, max_digits=12, validators=NON_NEGATIVE)),
                ('expense_toll', models.DecimalField(decimal_places=2, default=0, max_digits=12, validators=NON_NEGATIVE)),
                ('expense_maintenance', models.DecimalField(decimal_places=2, default=0, max_digits=12, validators=NON_NEGATIVE)),
                ('expense_other', models.DecimalField(decimal_places=2, default=0, max_digits=12, validators=NON_NEGATIVE)),
                ('expenses_total', models.DecimalField(decimal_places=2, default=0, editable=False, max_digits=12)),
                ('allowance_overtime_hours', models.DecimalField(decimal_places=2, default=0, max_digits=6, validators=NON_NEGATIVE)),
                ('allowance_overtime_amount', models.DecimalField(decimal_places=2, default=0, max_digits=12, validators=NON_NEGATIVE)),
                ('allowance_food_nights', models.PositiveIntegerField(default=0)),
                ('allowance_food_amount', models.DecimalField(decimal_places=2, default=0, max_digits=12, validators=NON_NEGATIVE)),
                ('allowance_outstation_nights', models.PositiveIntegerField(default=0)),
                ('allowance_outstation_amount', models.DecimalField(decimal_places=2, default=0, max_digits=12, validators=NON_NEGATIVE)),
                ('allowance_parking', models.DecimalField(decimal_places=2, default=0, max_digits=12, validators=NON_NEGATIVE)),
                ('allowance_total', models.DecimalField(decimal_places=2, default=0, editable=False, max_digits=12)),
                ('total_amount', models.DecimalField(decimal_places=2, default=0, editable=False, max_digits=12)),
                ('received_amount', models.DecimalField(decimal_places=2, default=0, max_digits=12, validators=NON_NEGATIVE)),
                ('balance_amount', models.DecimalField(decimal_places=2, default=0, editable=False, max_digits=12)),
                ('security_deposit', models.DecimalField(decimal_places=2, default=0, max_digits=12, validators=NON_NEGATIVE)),
                ('status', models.CharField(choices=[('confirmed', 'Confirmed'), ('in_progress', 'In Progress'), ('completed', 'Completed'), ('cancelled', 'Cancelled')], default='confirmed', max_length=20)),
                ('payment_status', models.CharField(choices=[('unpaid', 'Unpaid'), ('partial', 'Partial'), ('paid', 'Paid')], default='unpaid', editable=False, max_length=10)),
                ('notes', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('customer', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='bookings', to='rentals.customer')),
                ('driver', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='bookings', to='rentals.driver')),
                ('outsourced_vehicle', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='bookings', to='rentals.outsourcedvehicle')),
                ('vehicle', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='bookings', to='rentals.vehicle')),
            ],
            options={
                'ordering': ['-created_at', '-id'],
            },
        ),
        migrations.CreateModel(
            name='Payment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('payment_type', models.CharField(choices=[('Receivable', 'Receivable'), ('Payable', 'Payable')], max_length=20)),
                ('category', models.CharField(choices=[('Rental Payment', 'Rental Payment'), ('Security Deposit', 'Security Deposit'), ('Vendor Payment', 'Vendor Payment'), ('Driver Salary', 'Driver Salary'), ('Expense Reimbursement', 'Expense Reimbursement'), ('Other', 'Other')], max_length=30)),
                ('description', models.CharField(max_length=255)),
                ('amount', models.DecimalField(decimal_places=2, max_digits=12, validators=NON_NEGATIVE)),
                ('paid_amount', models.DecimalField(decimal_places=2, default=0, max_digits=12, validators=NON_NEGATIVE)),
                ('balance_amount', models.DecimalField(decimal_places=2, default=0, editable=False, max_digits=12)),
                ('due_date', models.DateField(blank=True, null=True)),
                ('payment_date', models.DateField(blank=True, null=True)),
                ('payment_method', models.CharField(choices=[('cash', 'Cash')], default='cash', max_length=20)),
                ('reference_number', models.CharField(blank=True, default='', max_length=100)),
                ('bank_account_number', models.CharField(blank=True, default='', max_length=50)),
                ('bank_account_title', models.CharField(blank=True, default='', max_length=255)),
                ('bank_name', models.CharField(blank=True, default='', max_length=255)),
                ('bank_branch_code', models.CharField(blank=True, default='', max_length=20)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('paid', 'Paid'), ('unpaid', 'Unpaid'), ('balance', 'Balance')], default='pending', max_length=10)),
                ('notes', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('booking', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='payments', to='rentals.booking')),
                ('customer', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='payments', to='rentals.customer')),
            ],
            options={
                'ordering': ['-created_at', '-id'],
            },
        ),
        migrations.CreateModel(
            name='Expense',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('category', models.CharField(choices=[('Fuel', 'Fuel'), ('Toll', 'Toll'), ('Maintenance', 'Maintenance'), ('Parking', 'Parking'), ('Food', 'Food'), ('Other', 'Other')], max_length=20)),
                ('description', models.CharField(max_length=255)),
                ('amount', models.DecimalField(decimal_places=2, max_digits=12, validators=NON_NEGATIVE)),
                ('date', models.DateField()),
                ('receipt_number', models.CharField(blank=True, default='', max_length=100)),
                ('vendor', models.CharField(blank=True, default='', max_length=255)),
                ('payment_method', models.CharField(choices=[('Cash', 'Cash'), ('Card', 'Card'), ('Bank Transfer', 'Bank Transfer'), ('Cheque', 'Cheque')], default='Cash', max_length=20)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('approved', 'Approved'), ('rejected', 'Rejected')], default='pending', max_length=10)),
                ('approved_by', models.CharField(blank=True, default='', max_length=150)),
                ('approval_date', models.DateTimeField(blank=True, null=True)),
                ('notes', models.TextField(blank=True, default='')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('booking', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='expense_records', to='rentals.booking')),
                ('driver', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='expenses', to='rentals.driver')),
                ('vehicle', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='expenses', to='rentals.vehicle')),
            ],
            options={
                'ordering': ['-date', '-id'],
            },
        ),
        migrations.RunPython(seed_booking_sequence, migrations.RunPython.noop),
    ]
