# api/views.py
import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import Count, Q, Sum
from django.http import HttpResponse
from django.utils.dateparse import parse_date
from rest_framework import status, viewsets
from rest_framework.decorators import action, api_view
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response

from rentals import dashboard
from rentals.models import (
    Booking,
    Customer,
    Driver,
    DriverMonthlyExpense,
    Expense,
    OutsourcedVehicle,
    Payment,
    Vehicle,
)
from rentals.reports import REPORT_BUILDERS, XLSX_CONTENT_TYPE, build_report
from rentals.settlement import DECIMAL_ZERO, SettlementTerms, compute_settlement, settlement_errors

from .serializers import (
    BookingPaymentSerializer,
    BookingQuoteSerializer,
    BookingSerializer,
    CompleteBookingSerializer,
    CustomerSerializer,
    DriverMonthlyExpenseSerializer,
    DriverSerializer,
    ExpenseRejectSerializer,
    ExpenseSerializer,
    MaintenanceLogSerializer,
    OutsourcedPaymentSerializer,
    OutsourcedVehicleSerializer,
    PaymentSerializer,
    RecordPaymentSerializer,
    VehicleSerializer,
    VehicleStatusSerializer,
)

logger = logging.getLogger(__name__)


def _filter_exact(queryset, params, *names):
    for name in names:
        value = params.get(name)
        if value:
            queryset = queryset.filter(**{name: value})
    return queryset


def _search(queryset, term, *fields):
    term = (term or "").strip()
    if not term:
        return queryset
    query = Q()
    for field_name in fields:
        query |= Q(**{f"{field_name}__icontains": term})
    return queryset.filter(query)


def _date_param(params, name):
    value = params.get(name)
    if not value:
        return None
    parsed = parse_date(value)
    if parsed is None:
        raise ValidationError({name: ["Use the YYYY-MM-DD format."]})
    return parsed


def _id_param(params, name):
    value = params.get(name)
    if not value:
        return None
    if not value.isdigit():
        raise ValidationError({name: ["Must be a numeric id."]})
    return int(value)


def _filter_ids(queryset, params, *names):
    for name in names:
        pk = _id_param(params, name)
        if pk is not None:
            queryset = queryset.filter(**{f"{name}_id": pk})
    return queryset


def _period_params(params):
    start_date = _date_param(params, "start_date")
    end_date = _date_param(params, "end_date")
    if start_date and end_date and end_date < start_date:
        raise ValidationError({"end_date": ["End date cannot be before the start date."]})
    return {"start_date": start_date, "end_date": end_date}


class CustomerViewSet(viewsets.ModelViewSet):
    serializer_class = CustomerSerializer

    def get_queryset(self):
        params = self.request.query_params
        queryset = _filter_exact(Customer.objects.all(), params, 'customer_type', 'status')
        return _search(queryset, params.get('search'), 'name', 'cnic', 'company_registration', 'phone', 'email')

    @action(detail=True, methods=['get'])
    def bookings(self, request, pk=None):
        """The customer's booking history, newest first"""
        customer = self.get_object()
        queryset = customer.bookings.select_related('customer', 'vehicle', 'driver').order_by('-created_at', '-id')
        return Response(BookingSerializer(queryset, many=True).data)

    @action(detail=False, methods=['get'])
    def balances(self, request):
        """Booked, paid and pending amounts for every customer"""
        return Response(dashboard.customer_balances())


class VehicleViewSet(viewsets.ModelViewSet):
    serializer_class = VehicleSerializer

    def get_queryset(self):
        params = self.request.query_params
        queryset = _filter_exact(Vehicle.objects.prefetch_related('maintenance_logs'), params, 'status')
        return _search(queryset, params.get('search'), 'registration_number', 'make', 'model')

    @action(detail=True, methods=['post'])
    def maintenance(self, request, pk=None):
        """Log a maintenance job against the vehicle"""
        vehicle = self.get_object()
        serializer = MaintenanceLogSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        log = vehicle.add_maintenance_log(**serializer.validated_data)
        return Response(MaintenanceLogSerializer(log).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['patch'], url_path='status')
    def update_status(self, request, pk=None):
        vehicle = self.get_object()
        serializer = VehicleStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        vehicle.set_status(serializer.validated_data['status'])
        logger.info("Vehicle %s set to %s", vehicle.registration_number, vehicle.status)
        return Response(self.get_serializer(vehicle).data)


class DriverViewSet(viewsets.ModelViewSet):
    serializer_class = DriverSerializer

    def get_queryset(self):
        params = self.request.query_params
        queryset = _filter_exact(Driver.objects.select_related('assigned_vehicle'), params, 'status')
        return _search(queryset, params.get('search'), 'name', 'cnic', 'license_number', 'phone')

    @action(detail=True, methods=['get'])
    def trips(self, request, pk=None):
        """Bookings the driver has been assigned to, newest first"""
        driver = self.get_object()
        queryset = driver.bookings.select_related('customer', 'vehicle', 'driver').order_by('-created_at', '-id')
        return Response(BookingSerializer(queryset, many=True).data)

    @action(detail=True, methods=['get', 'post'], url_path='monthly-expenses')
    def monthly_expenses(self, request, pk=None):
        """List the driver's monthly allowance sheets, or record one for a month"""
        driver = self.get_object()
        if request.method == 'GET':
            serializer = DriverMonthlyExpenseSerializer(driver.monthly_expenses.all(), many=True)
            return Response(serializer.data)

        serializer = DriverMonthlyExpenseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        month = serializer.validated_data['month'].replace(day=1)
        expense = driver.monthly_expenses.filter(month=month).first()
        created = expense is None
        if created:
            expense = DriverMonthlyExpense(driver=driver)
        for field_name, value in serializer.validated_data.items():
            setattr(expense, field_name, value)
        expense.month = month
        expense.save()
        return Response(
            DriverMonthlyExpenseSerializer(expense).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )


class OutsourcedVehicleViewSet(viewsets.ModelViewSet):
    serializer_class = OutsourcedVehicleSerializer

    def get_queryset(self):
        params = self.request.query_params
        queryset = _filter_exact(OutsourcedVehicle.objects.all(), params, 'status')
        return _search(queryset, params.get('search'), 'registration_number', 'vendor_name')

    @action(detail=True, methods=['patch'])
    def payment(self, request, pk=None):
        """Set the amount paid to the vendor so far"""
        vehicle = self.get_object()
        serializer = OutsourcedPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        vehicle.update_payment(serializer.validated_data['paid_amount'])
        return Response(self.get_serializer(vehicle).data)


class BookingViewSet(viewsets.ModelViewSet):
    serializer_class = BookingSerializer

    def get_queryset(self):
        params = self.request.query_params
        queryset = Booking.objects.select_related('customer', 'vehicle', 'driver', 'outsourced_vehicle')
        queryset = _filter_exact(queryset, params, 'status', 'payment_status', 'rental_type')
        queryset = _filter_ids(queryset, params, 'customer', 'vehicle', 'driver')
        return _search(
            queryset,
            params.get('search'),
            'booking_number',
            'customer__name',
            'vehicle__registration_number',
        )

    def perform_create(self, serializer):
        with transaction.atomic():
            booking = serializer.save()
        logger.info(
            "Booking %s created for %s; total %s", booking.booking_number, booking.customer, booking.total_amount
        )

    def perform_update(self, serializer):
        with transaction.atomic():
            booking = serializer.save()
        logger.info("Booking %s updated; total %s", booking.booking_number, booking.total_amount)

    def perform_destroy(self, instance):
        booking_number = instance.booking_number
        with transaction.atomic():
            instance.delete()
        logger.info("Booking %s deleted", booking_number)

    @action(detail=False, methods=['post'])
    def quote(self, request):
        """Preview a settlement without saving anything"""
        serializer = BookingQuoteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        vehicle = data.get('vehicle')
        driver = data.get('driver')
        terms = SettlementTerms(
            start_date=data['start_date'],
            end_date=data['end_date'],
            is_outstation=data['is_outstation'],
            actual_duty_hours=data['actual_duty_hours'],
            mileage_start=data['mileage_start'],
            mileage_end=data['mileage_end'],
            tax_deduction_percentage=data['tax_deduction_percentage'],
        )
        vehicle_rates = vehicle.settlement_rates() if vehicle else None
        errors = settlement_errors(terms, vehicle_rates)
        if errors:
            raise DjangoValidationError(errors)

        result = compute_settlement(terms, vehicle_rates, driver.settlement_rates() if driver else None)
        return Response(result.as_dict())

    @action(detail=True, methods=['patch'])
    def complete(self, request, pk=None):
        booking = self.get_object()
        serializer = CompleteBookingSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        booking.complete(
            actual_return_date=data.get('actual_return_date'),
            end_mileage=data.get('end_mileage'),
            expenses=data.get('expenses'),
            driver_allowance=data.get('driver_allowance'),
        )
        return Response(self.get_serializer(booking).data)

    @action(detail=True, methods=['patch'])
    def cancel(self, request, pk=None):
        booking = self.get_object()
        booking.cancel()
        return Response(self.get_serializer(booking).data)

    @action(detail=True, methods=['patch'])
    def payment(self, request, pk=None):
        """Record what the customer has paid, optionally with a new tax deduction"""
        booking = self.get_object()
        serializer = BookingPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        with transaction.atomic():
            booking.record_payment(
                serializer.validated_data['received_amount'],
                serializer.validated_data.get('tax_deduction_percentage'),
            )
        return Response(self.get_serializer(booking).data)

    @action(detail=True, methods=['post'])
    def receivable(self, request, pk=None):
        """Create or refresh the ledger entry for this booking"""
        booking = self.get_object()
        payment = booking.sync_receivable()
        return Response(PaymentSerializer(payment).data)


class PaymentViewSet(viewsets.ModelViewSet):
    serializer_class = PaymentSerializer

    def get_queryset(self):
        params = self.request.query_params
        queryset = Payment.objects.select_related('customer', 'booking')
        queryset = _filter_exact(queryset, params, 'payment_type', 'status', 'category')
        return _search(
            queryset,
            params.get('search'),
            'description',
            'reference_number',
            'customer__name',
            'booking__booking_number',
        )

    @action(detail=True, methods=['patch'])
    def record(self, request, pk=None):
        """Add an instalment to the payment"""
        payment = self.get_object()
        serializer = RecordPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        payment.record(**serializer.validated_data)
        return Response(self.get_serializer(payment).data)

    def _summary(self, payment_type):
        queryset = Payment.objects.filter(payment_type=payment_type)
        by_status = (
            queryset.values('status')
            .annotate(
                count=Count('id'),
                amount=Sum('amount'),
                paid=Sum('paid_amount'),
                balance=Sum('balance_amount'),
            )
            .order_by('status')
        )
        totals = queryset.aggregate(
            count=Count('id'),
            amount=Sum('amount'),
            paid=Sum('paid_amount'),
            outstanding=Sum('balance_amount', filter=Q(status__in=Payment.OUTSTANDING_STATUSES)),
        )
        return {
            'payment_type': payment_type,
            'count': totals['count'],
            'total_amount': totals['amount'] or DECIMAL_ZERO,
            'total_paid': totals['paid'] or DECIMAL_ZERO,
            'outstanding_balance': totals['outstanding'] or DECIMAL_ZERO,
            'by_status': [
                {
                    'status': row['status'],
                    'count': row['count'],
                    'amount': row['amount'] or DECIMAL_ZERO,
                    'paid_amount': row['paid'] or DECIMAL_ZERO,
                    'balance_amount': row['balance'] or DECIMAL_ZERO,
                }
                for row in by_status
            ],
        }

    @action(detail=False, methods=['get'], url_path='summary/receivables', url_name='summary-receivables')
    def receivables_summary(self, request):
        return Response(self._summary(Payment.TYPE_RECEIVABLE))

    @action(detail=False, methods=['get'], url_path='summary/payables', url_name='summary-payables')
    def payables_summary(self, request):
        return Response(self._summary(Payment.TYPE_PAYABLE))


class ExpenseViewSet(viewsets.ModelViewSet):
    serializer_class = ExpenseSerializer

    def get_queryset(self):
        params = self.request.query_params
        queryset = Expense.objects.select_related('vehicle', 'driver', 'booking')
        queryset = _filter_exact(queryset, params, 'category', 'status')
        return _filter_ids(queryset, params, 'vehicle', 'driver')

    @action(detail=True, methods=['patch'])
    def approve(self, request, pk=None):
        expense = self.get_object()
        expense.approve(request.user)
        return Response(self.get_serializer(expense).data)

    @action(detail=True, methods=['patch'])
    def reject(self, request, pk=None):
        expense = self.get_object()
        serializer = ExpenseRejectSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        expense.reject(request.user, serializer.validated_data.get('reason'))
        return Response(self.get_serializer(expense).data)


@api_view(["GET"])
def dashboard_summary(request):
    return Response(dashboard.dashboard_summary())


@api_view(["GET"])
def revenue_chart(request):
    months = request.query_params.get("months")
    if months is not None:
        try:
            months = int(months)
        except ValueError:
            raise ValidationError({"months": ["Must be a whole number."]})
        if months < 1:
            raise ValidationError({"months": ["Must be at least 1."]})
    return Response(dashboard.revenue_chart(months=months))


@api_view(["GET"])
def recent_activities(request):
    return Response(dashboard.recent_activities())


@api_view(["GET"])
def top_customers(request):
    return Response(dashboard.top_customers())


@api_view(["GET"])
def monthly_report(request):
    return Response(dashboard.monthly_report(**_period_params(request.query_params)))


@api_view(["GET"])
def vehicle_report(request):
    period = _period_params(request.query_params)
    return Response({"vehicle_performance": dashboard.vehicle_performance(**period)})


@api_view(["GET"])
def driver_report(request):
    period = _period_params(request.query_params)
    return Response({"driver_performance": dashboard.driver_performance(**period)})


@api_view(["GET"])
def financial_report(request):
    return Response({"financial_summary": dashboard.financial_summary(**_period_params(request.query_params))})


@api_view(["GET"])
def report_export(request, name: str):
    if name not in REPORT_BUILDERS:
        return Response({"error": "unknown_report", "allowed": sorted(REPORT_BUILDERS)}, status=404)

    params = request.query_params
    filters = {
        "start_date": _date_param(params, "start_date"),
        "end_date": _date_param(params, "end_date"),
    }
    if name == "monthly-rental":
        filters["vehicle"] = _id_param(params, "vehicle")
        filters["customer"] = _id_param(params, "customer")

    report = build_report(name, **filters)
    response = HttpResponse(report.to_bytes(), content_type=XLSX_CONTENT_TYPE)
    response["Content-Disposition"] = f'attachment; filename="{report.filename}"'
    return response
