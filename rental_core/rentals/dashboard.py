import calendar
import datetime
from decimal import Decimal

from django.conf import settings
from django.db.models import Count, Q, Sum
from django.db.models.functions import TruncMonth
from django.utils import timezone

from .models import Booking, Customer, Driver, Expense, Payment, Vehicle
from .settlement import DECIMAL_ZERO, round_currency

FUEL_TOLL_CATEGORIES = (Expense.CATEGORY_FUEL, Expense.CATEGORY_TOLL)
DRIVER_EXPENSE_CATEGORIES = (Expense.CATEGORY_FOOD, Expense.CATEGORY_PARKING)
EARNING_PAYMENT_STATUSES = (Booking.PAYMENT_PAID, Booking.PAYMENT_PARTIAL)


def month_bounds(day):
    start = datetime.date(day.year, day.month, 1)
    last_day = calendar.monthrange(day.year, day.month)[1]
    return start, datetime.date(day.year, day.month, last_day)


def shift_month(day, months):
    index = day.year * 12 + (day.month - 1) + months
    return datetime.date(index // 12, index % 12 + 1, 1)


def _money(value):
    return round_currency(value or DECIMAL_ZERO)


def _received_between(start, end):
    total = (
        Booking.objects.filter(
            created_at__date__gte=start,
            created_at__date__lte=end,
            payment_status__in=EARNING_PAYMENT_STATUSES,
        )
        .aggregate(total=Sum('received_amount'))
        .get('total')
    )
    return _money(total)


def _outstanding(payment_type):
    total = (
        Payment.objects.filter(payment_type=payment_type, status__in=Payment.OUTSTANDING_STATUSES)
        .aggregate(total=Sum('balance_amount'))
        .get('total')
    )
    return _money(total)


def _expenses_by_category(start, end, categories):
    rows = (
        Expense.objects.filter(date__gte=start, date__lte=end, category__in=categories)
        .exclude(status=Expense.STATUS_REJECTED)
        .values('category')
        .annotate(total=Sum('amount'))
        .order_by('category')
    )
    return [{'category': row['category'], 'total': _money(row['total'])} for row in rows]


def dashboard_summary(today=None):
    """Headline figures for the current month."""
    today = today or timezone.localdate()
    start, end = month_bounds(today)

    vehicle_status = (
        Vehicle.objects.values('status')
        .annotate(count=Count('id'))
        .order_by('status')
    )
    return {
        'month': start.strftime('%B %Y'),
        'currency': settings.RENTAL_CURRENCY,
        'monthly_income': _received_between(start, end),
        'total_trips': Booking.objects.filter(created_at__date__gte=start, created_at__date__lte=end).count(),
        'outstanding_receivables': _outstanding(Payment.TYPE_RECEIVABLE),
        'outstanding_payables': _outstanding(Payment.TYPE_PAYABLE),
        'fuel_toll_expenses': _expenses_by_category(start, end, FUEL_TOLL_CATEGORIES),
        'driver_expenses': _expenses_by_category(start, end, DRIVER_EXPENSE_CATEGORIES),
        'vehicle_status': [{'status': row['status'], 'count': row['count']} for row in vehicle_status],
    }


def revenue_chart(months=None, today=None):
    months = months or settings.DASHBOARD_REVENUE_MONTHS
    today = today or timezone.localdate()
    data = []
    for offset in range(months - 1, -1, -1):
        start, end = month_bounds(shift_month(today, -offset))
        data.append({'month': start.strftime('%b %Y'), 'revenue': _received_between(start, end)})
    return data


def recent_activities(limit=None):
    limit = limit or settings.DASHBOARD_RECENT_ITEMS
    bookings = Booking.objects.select_related('customer', 'vehicle').order_by('-created_at', '-id')[:limit]
    expenses = Expense.objects.select_related('vehicle').order_by('-created_at', '-id')[:limit]
    return {
        'recent_bookings': [
            {
                'id': booking.pk,
                'booking_number': booking.booking_number,
                'customer': booking.customer.name,
                'vehicle': booking.vehicle.registration_number if booking.vehicle_id else None,
                'status': booking.status,
                'created_at': booking.created_at,
            }
            for booking in bookings
        ],
        'recent_expenses': [
            {
                'id': expense.pk,
                'description': expense.description,
                'category': expense.category,
                'amount': expense.amount,
                'date': expense.date,
                'vehicle': expense.vehicle.registration_number if expense.vehicle_id else None,
            }
            for expense in expenses
        ],
    }


def top_customers(limit=None):
    limit = limit or settings.DASHBOARD_TOP_CUSTOMERS
    customers = (
        Customer.objects.annotate(
            booking_count=Count('bookings'),
            revenue=Sum('bookings__received_amount'),
        )
        .filter(booking_count__gt=0)
        .order_by('-revenue', 'name')[:limit]
    )
    return [
        {
            'id': customer.pk,
            'name': customer.name,
            'total_bookings': customer.booking_count,
            'total_revenue': _money(customer.revenue),
        }
        for customer in customers
    ]


def customer_balances():
    """What each customer has booked, paid through the ledger, and still owes."""
    ledger = {
        row['customer']: row['paid']
        for row in Payment.objects.filter(customer__isnull=False)
        .values('customer')
        .annotate(paid=Sum('paid_amount'))
    }
    customers = Customer.objects.annotate(
        booking_count=Count('bookings', filter=~Q(bookings__status=Booking.STATUS_CANCELLED)),
        booked_amount=Sum('bookings__total_amount', filter=~Q(bookings__status=Booking.STATUS_CANCELLED)),
    ).order_by('name')
    balances = []
    for customer in customers:
        total = _money(customer.booked_amount)
        paid = _money(ledger.get(customer.pk))
        balances.append({
            'customer_id': customer.pk,
            'customer_name': customer.name,
            'total_bookings': customer.booking_count,
            'total_amount': total,
            'paid_amount': paid,
            'pending_amount': total - paid,
        })
    return balances


# ---------- Period analytics ------------------------------------------------

OUTSOURCED_BOOKING = Q(outsourced_vehicle__isnull=False) | Q(vehicle__vehicle_type=Vehicle.TYPE_OUTSOURCED_IN)
COUNTED_BOOKING_STATUSES = Booking.ACTIVE_STATUSES + (Booking.STATUS_COMPLETED,)


def report_period(start_date=None, end_date=None, today=None):
    """Default to the year so far."""
    today = today or timezone.localdate()
    return start_date or datetime.date(today.year, 1, 1), end_date or today


def _bookings_starting(start, end):
    return Booking.objects.filter(start_date__gte=start, start_date__lte=end).exclude(
        status=Booking.STATUS_CANCELLED
    )


def financial_summary(start_date=None, end_date=None, today=None):
    start, end = report_period(start_date, end_date, today)
    revenue = _bookings_starting(start, end).aggregate(
        total=Sum('total_rent'),
        own_fleet=Sum('total_rent', filter=~OUTSOURCED_BOOKING),
        outsourced=Sum('total_rent', filter=OUTSOURCED_BOOKING),
    )
    expenses = (
        Expense.objects.filter(date__gte=start, date__lte=end)
        .exclude(status=Expense.STATUS_REJECTED)
        .aggregate(total=Sum('amount'))
        .get('total')
    )
    total_revenue = _money(revenue['total'])
    total_expenses = _money(expenses)
    return {
        'start_date': start,
        'end_date': end,
        'total_revenue': total_revenue,
        'total_expenses': total_expenses,
        'net_profit': total_revenue - total_expenses,
        'own_fleet_revenue': _money(revenue['own_fleet']),
        'outsourced_revenue': _money(revenue['outsourced']),
    }


def monthly_report(start_date=None, end_date=None, today=None):
    """Rent earned per month, split between the own fleet and outsourced vehicles."""
    start, end = report_period(start_date, end_date, today)
    rows = (
        _bookings_starting(start, end)
        .annotate(period=TruncMonth('start_date'))
        .values('period')
        .annotate(
            total_bookings=Count('id'),
            total_revenue=Sum('total_rent'),
            own_fleet_revenue=Sum('total_rent', filter=~OUTSOURCED_BOOKING),
            outsourced_revenue=Sum('total_rent', filter=OUTSOURCED_BOOKING),
        )
        .order_by('period')
    )
    return {
        'monthly_rentals': [
            {
                'month': row['period'].strftime('%b %Y'),
                'total_bookings': row['total_bookings'],
                'total_revenue': _money(row['total_revenue']),
                'own_fleet_revenue': _money(row['own_fleet_revenue']),
                'outsourced_revenue': _money(row['outsourced_revenue']),
            }
            for row in rows
        ],
        'financial_summary': financial_summary(start, end),
    }


def vehicle_performance(start_date=None, end_date=None, today=None):
    start, end = report_period(start_date, end_date, today)
    days_in_period = max((end - start).days + 1, 1)
    in_period = Q(
        bookings__start_date__gte=start,
        bookings__start_date__lte=end,
        bookings__status__in=COUNTED_BOOKING_STATUSES,
    )
    vehicles = Vehicle.objects.annotate(
        booking_count=Count('bookings', filter=in_period),
        revenue=Sum('bookings__total_rent', filter=in_period),
        booked_days=Sum('bookings__total_days', filter=in_period),
    ).order_by('registration_number')
    return [
        {
            'vehicle_id': vehicle.pk,
            'registration_number': vehicle.registration_number,
            'make': vehicle.make,
            'model': vehicle.model,
            'total_bookings': vehicle.booking_count,
            'total_revenue': _money(vehicle.revenue),
            'booked_days': vehicle.booked_days or 0,
            # Overlapping bookings can push the raw figure past the period.
            'utilization_rate': min(
                round_currency(Decimal(vehicle.booked_days or 0) * 100 / days_in_period),
                Decimal('100.00'),
            ),
        }
        for vehicle in vehicles
    ]


def driver_performance(start_date=None, end_date=None, today=None):
    start, end = report_period(start_date, end_date, today)
    in_period = Q(
        bookings__start_date__gte=start,
        bookings__start_date__lte=end,
        bookings__status__in=COUNTED_BOOKING_STATUSES,
    )
    expenses = {
        row['driver']: row['total']
        for row in Expense.objects.filter(driver__isnull=False, date__gte=start, date__lte=end)
        .exclude(status=Expense.STATUS_REJECTED)
        .values('driver')
        .annotate(total=Sum('amount'))
    }
    drivers = Driver.objects.annotate(
        assignment_count=Count('bookings', filter=in_period),
        charges=Sum('bookings__driver_charges_total', filter=in_period),
        allowances=Sum('bookings__allowance_total', filter=in_period),
    ).order_by('name')
    return [
        {
            'driver_id': driver.pk,
            'name': driver.name,
            'status': driver.status,
            'total_assignments': driver.assignment_count,
            'driver_charges': _money(driver.charges),
            'allowances': _money(driver.allowances),
            'total_expenses': _money(expenses.get(driver.pk)),
        }
        for driver in drivers
    ]
