from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import (
    AvailabilityViewSet,
    CaregiverViewSet,
    DashboardView,
    EarningsSummaryView,
    FavoriteViewSet,
    HireRequestViewSet,
    MeView,
    NotificationViewSet,
    PaymentCustomerView,
    RatingViewSet,
    RegisterCaregiverView,
    RegisterClientView,
    SpecialtyViewSet,
    TransactionLogViewSet,
    login_view,
)

router = DefaultRouter()
router.register(r'specialties', SpecialtyViewSet, basename='specialty')
router.register(r'caregivers', CaregiverViewSet, basename='caregiver')
router.register(r'availability', AvailabilityViewSet, basename='availability')
router.register(r'hire-requests', HireRequestViewSet, basename='hire-request')
router.register(r'ratings', RatingViewSet, basename='rating')
router.register(r'favorites', FavoriteViewSet, basename='favorite')
router.register(r'notifications', NotificationViewSet, basename='notification')
router.register(r'transactions', TransactionLogViewSet, basename='transaction')

urlpatterns = [
    path('auth/register/client/', RegisterClientView.as_view(), name='register-client'),
    path('auth/register/caregiver/', RegisterCaregiverView.as_view(), name='register-caregiver'),
    path('auth/login/', login_view, name='login'),
    path('me/', MeView.as_view(), name='me'),
    path('earnings/summary/', EarningsSummaryView.as_view(), name='earnings-summary'),
    path('dashboard/', DashboardView.as_view(), name='dashboard'),
    path('payments/customers/', PaymentCustomerView.as_view(), name='payment-customer'),
    path('', include(router.urls)),
]
