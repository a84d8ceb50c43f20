# api/urls.py
from django.urls import path, include
from rest_framework.authtoken.views import obtain_auth_token
from rest_framework.routers import DefaultRouter

from .views import (
    BookingViewSet,
    CustomerViewSet,
    DriverViewSet,
    ExpenseViewSet,
    OutsourcedVehicleViewSet,
    PaymentViewSet,
    VehicleViewSet,
    dashboard_summary,
    driver_report,
    financial_report,
    monthly_report,
    recent_activities,
    report_export,
    revenue_chart,
    top_customers,
    vehicle_report,
)

router = DefaultRouter()
router.register(r'customers', CustomerViewSet, basename='customers')
router.register(r'vehicles', VehicleViewSet, basename='vehicles')
router.register(r'drivers', DriverViewSet, basename='drivers')
router.register(r'outsourced-vehicles', OutsourcedVehicleViewSet, basename='outsourced-vehicles')
router.register(r'bookings', BookingViewSet, basename='bookings')
router.register(r'payments', PaymentViewSet, basename='payments')
router.register(r'expenses', ExpenseViewSet, basename='expenses')

urlpatterns = [
    # Built-in DRF token login
    path('auth/login-token/', obtain_auth_token, name='api_token_auth'),

    path('dashboard/summary/', dashboard_summary, name='dashboard_summary'),
    path('dashboard/revenue-chart/', revenue_chart, name='dashboard_revenue_chart'),
    path('dashboard/recent-activities/', recent_activities, name='dashboard_recent_activities'),
    path('dashboard/top-customers/', top_customers, name='dashboard_top_customers'),

    path('reports/monthly/', monthly_report, name='report_monthly'),
    path('reports/vehicles/', vehicle_report, name='report_vehicles'),
    path('reports/drivers/', driver_report, name='report_drivers'),
    path('reports/financial/', financial_report, name='report_financial'),
    path('reports/<str:name>/', report_export, name='report_export'),

    path('', include(router.urls)),
]
