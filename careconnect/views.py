"""API views for the caregiver marketplace."""
from __future__ import annotations

import logging
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.contrib.auth import authenticate
from django.db.models import Sum
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_time
from rest_framework import generics, mixins, permissions, status, viewsets
from rest_framework.authtoken.models import Token
from rest_framework.decorators import action, api_view, permission_classes
from rest_framework.exceptions import PermissionDenied, ValidationError
from rest_framework.response import Response

from . import notifications
from .asaas import AsaasClient
from .exceptions import PaymentGatewayError
from .filters import CaregiverFilter, HireRequestFilter
from .models import (
    CaregiverAvailability,
    CaregiverProfile,
    Favorite,
    HireRequest,
    Notification,
    Rating,
    Specialty,
    TransactionLog,
)
from .payments import ensure_asaas_customer, pay_hire_request
from .permissions import IsCaregiver, IsClient, get_caregiver_profile, get_client_profile
from .ratings import rate_hire_request
from .scheduling import get_day_slots, is_caregiver_available
from .serializers import (
    AvailabilitySerializer,
    CaregiverDetailSerializer,
    CaregiverListSerializer,
    CaregiverProfileSerializer,
    CaregiverRegistrationSerializer,
    ClientProfileSerializer,
    ClientRegistrationSerializer,
    EarningsSummarySerializer,
    FavoriteSerializer,
    HireRequestCreateSerializer,
    HireRequestSerializer,
    NotificationSerializer,
    PaymentCustomerSerializer,
    RatingCreateSerializer,
    RatingSerializer,
    SpecialtySerializer,
    TimeSlotSerializer,
    TransactionLogSerializer,
)

logger = logging.getLogger(__name__)


class RegisterClientView(generics.CreateAPIView):
    permission_classes = [permissions.AllowAny]
    serializer_class = ClientRegistrationSerializer


class RegisterCaregiverView(generics.CreateAPIView):
    permission_classes = [permissions.AllowAny]
    serializer_class = CaregiverRegistrationSerializer


@api_view(['POST'])
@permission_classes([permissions.AllowAny])
def login_view(request):
    user = authenticate(username=request.data.get('username'), password=request.data.get('password'))
    if not user:
        logger.info('Failed login for %s', request.data.get('username'))
        return Response({'detail': 'Invalid credentials'}, status=status.HTTP_400_BAD_REQUEST)
    token, _ = Token.objects.get_or_create(user=user)
    return Response({'token': token.key})


class MeView(generics.GenericAPIView):
    """Current user with whichever profiles they own; PATCH edits the profile."""

    def get(self, request, *args, **kwargs):
        client = get_client_profile(request.user)
        caregiver = get_caregiver_profile(request.user)
        data = {
            'user': request.user.username,
            'role': 'caregiver' if caregiver else 'client' if client else None,
            'client_profile': ClientProfileSerializer(client).data if client else None,
            'caregiver_profile': CaregiverProfileSerializer(caregiver).data if caregiver else None,
            'unread_notifications': notifications.unread_for(request.user).count(),
        }
        return Response(data)

    def patch(self, request, *args, **kwargs):
        caregiver = get_caregiver_profile(request.user)
        if caregiver:
            serializer = CaregiverProfileSerializer(caregiver, data=request.data, partial=True)
        else:
            client = get_client_profile(request.user)
            if client is None:
                raise PermissionDenied('This account has no profile')
            serializer = ClientProfileSerializer(client, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data)


class SpecialtyViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = Specialty.objects.all()
    serializer_class = SpecialtySerializer
    permission_classes = [permissions.AllowAny]
    pagination_class = None


class CaregiverViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = CaregiverProfile.objects.select_related('user').prefetch_related('specialties')
    serializer_class = CaregiverListSerializer
    permission_classes = [permissions.AllowAny]
    filterset_class = CaregiverFilter
    search_fields = ['user__first_name', 'user__last_name', 'user__username', 'bio']
    ordering_fields = ['rating_average', 'hourly_rate']
    ordering = ['-rating_average', '-rating_count']

    def get_serializer_class(self):
        if self.action == 'retrieve':
            return CaregiverDetailSerializer
        return super().get_serializer_class()

    def filter_queryset(self, queryset):
        queryset = super().filter_queryset(queryset)
        params = self.request.query_params
        if self.action != 'list' or not {'date', 'start_time', 'end_time'} <= params.keys():
            return queryset
        day = parse_date(params['date'])
        start = parse_time(params['start_time'])
        end = parse_time(params['end_time'])
        if not (day and start and end):
            raise ValidationError('date, start_time and end_time must be valid ISO values')
        available = [c.pk for c in queryset if is_caregiver_available(c, day, start, end)]
        return queryset.filter(pk__in=available)

    @action(detail=True, methods=['get'])
    def slots(self, request, pk=None):
        caregiver = self.get_object()
        day = parse_date(request.query_params.get('date', ''))
        if day is None:
            raise ValidationError({'date': 'Expected a date in YYYY-MM-DD format'})
        slots = get_day_slots(caregiver, day)
        return Response({'date': day, 'slots': TimeSlotSerializer(slots, many=True).data})

    @action(detail=True, methods=['get'])
    def ratings(self, request, pk=None):
        caregiver = self.get_object()
        ratings = caregiver.ratings.select_related('author')
        page = self.paginate_queryset(ratings)
        if page is not None:
            return self.get_paginated_response(RatingSerializer(page, many=True).data)
        return Response(RatingSerializer(ratings, many=True).data)


class AvailabilityViewSet(viewsets.ModelViewSet):
    serializer_class = AvailabilitySerializer
    permission_classes = [IsCaregiver]
    pagination_class = None

    def get_queryset(self):
        return CaregiverAvailability.objects.filter(caregiver__user=self.request.user)

    def perform_create(self, serializer):
        serializer.save(caregiver=self.request.user.caregiverprofile)


class HireRequestViewSet(
    mixins.CreateModelMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    permission_classes = [permissions.IsAuthenticated]
    queryset = HireRequest.objects.select_related('client__user', 'caregiver__user')
    filterset_class = HireRequestFilter
    ordering_fields = ['date', 'created_at']

    def get_serializer_class(self):
        if self.action == 'create':
            return HireRequestCreateSerializer
        return HireRequestSerializer

    def get_queryset(self):
        qs = super().get_queryset()
        as_caregiver = self.request.query_params.get('as') == 'caregiver'
        if as_caregiver:
            return qs.filter(caregiver__user=self.request.user)
        if self.action in ('list', 'create'):
            return qs.filter(client__user=self.request.user)
        # Either party may address a single request.
        return qs.filter(client__user=self.request.user) | qs.filter(caregiver__user=self.request.user)

    def _caregiver_transition(self, request, new_status):
        hire_request = self.get_object()
        if hire_request.caregiver.user != request.user:
            return Response(status=status.HTTP_403_FORBIDDEN)
        hire_request.change_status(new_status, actor=request.user)
        return Response({'status': hire_request.status})

    @action(detail=True, methods=['post'])
    def accept(self, request, pk=None):
        return self._caregiver_transition(request, HireRequest.STATUS_ACCEPTED)

    @action(detail=True, methods=['post'])
    def reject(self, request, pk=None):
        return self._caregiver_transition(request, HireRequest.STATUS_REJECTED)

    @action(detail=True, methods=['post'])
    def complete(self, request, pk=None):
        return self._caregiver_transition(request, HireRequest.STATUS_COMPLETED)

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        hire_request = self.get_object()
        if request.user not in (hire_request.client.user, hire_request.caregiver.user):
            return Response(status=status.HTTP_403_FORBIDDEN)
        hire_request.change_status(HireRequest.STATUS_CANCELLED, actor=request.user)
        return Response({'status': hire_request.status})

    @action(detail=True, methods=['post'])
    def pay(self, request, pk=None):
        hire_request = self.get_object()
        if hire_request.client.user != request.user:
            return Response(status=status.HTTP_403_FORBIDDEN)
        pay_hire_request(hire_request)
        return Response(HireRequestSerializer(hire_request).data)

    @action(detail=True, methods=['post'])
    def rate(self, request, pk=None):
        hire_request = self.get_object()
        if hire_request.client.user != request.user:
            return Response(status=status.HTTP_403_FORBIDDEN)
        serializer = RatingCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        rating = rate_hire_request(hire_request, request.user, **serializer.validated_data)
        return Response(RatingSerializer(rating).data, status=status.HTTP_201_CREATED)


class RatingViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = RatingSerializer
    permission_classes = [permissions.AllowAny]

    def get_queryset(self):
        caregiver_id = self.request.query_params.get('caregiver')
        qs = Rating.objects.select_related('author')
        if caregiver_id:
            qs = qs.filter(caregiver_id=caregiver_id)
        return qs


class FavoriteViewSet(
    mixins.CreateModelMixin,
    mixins.ListModelMixin,
    mixins.DestroyModelMixin,
    viewsets.GenericViewSet,
):
    serializer_class = FavoriteSerializer
    permission_classes = [IsClient]
    lookup_field = 'caregiver'

    def get_queryset(self):
        return Favorite.objects.filter(client__user=self.request.user).select_related('caregiver__user')

    def perform_create(self, serializer):
        serializer.save(client=self.request.user.clientprofile)


class NotificationViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = NotificationSerializer
    filterset_fields = ['status', 'type', 'priority']

    def get_queryset(self):
        return Notification.objects.filter(recipient=self.request.user)

    @action(detail=True, methods=['post'])
    def read(self, request, pk=None):
        notification = notifications.mark_as_read(self.get_object())
        return Response(self.get_serializer(notification).data)

    @action(detail=False, methods=['post'], url_path='read-all')
    def read_all(self, request):
        updated = notifications.mark_all_as_read(request.user)
        return Response({'updated': updated})

    @action(detail=False, methods=['get'], url_path='unread-count')
    def unread_count(self, request):
        return Response({'unread': notifications.unread_for(request.user).count()})


class TransactionLogViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = TransactionLogSerializer

    def get_queryset(self):
        return TransactionLog.objects.filter(user=self.request.user)


class EarningsSummaryView(generics.GenericAPIView):
    serializer_class = EarningsSummarySerializer
    permission_classes = [IsCaregiver]

    def get(self, request, *args, **kwargs):
        caregiver = request.user.caregiverprofile
        credits = TransactionLog.objects.filter(user=request.user, direction=TransactionLog.DIRECTION_CREDIT)
        total_earnings = credits.aggregate(total=Sum('amount'))['total'] or Decimal('0.00')
        last_30_days = (
            credits.filter(created_at__gte=timezone.now() - timedelta(days=30)).aggregate(total=Sum('amount'))['total']
            or Decimal('0.00')
        )
        serializer = self.get_serializer(
            {
                'total_earnings': total_earnings,
                'last_30_days': last_30_days,
                'completed_count': caregiver.hire_requests.filter(status=HireRequest.STATUS_COMPLETED).count(),
                'pending_count': caregiver.hire_requests.filter(status=HireRequest.STATUS_PENDING).count(),
                'rating_average': caregiver.rating_average,
                'rating_count': caregiver.rating_count,
            }
        )
        return Response(serializer.data)


class DashboardView(generics.GenericAPIView):
    """Hire requests grouped the way each role's dashboard shows them."""

    def get(self, request, *args, **kwargs):
        caregiver = get_caregiver_profile(request.user)
        client = get_client_profile(request.user)
        if caregiver is None and client is None:
            raise PermissionDenied('This account has no profile')

        owner = caregiver if caregiver else client
        requests = list(owner.hire_requests.select_related('client__user', 'caregiver__user'))
        now = timezone.now()

        groups = {
            'pending': [r for r in requests if r.status == HireRequest.STATUS_PENDING],
            'upcoming': [
                r
                for r in requests
                if r.status in (HireRequest.STATUS_ACCEPTED, HireRequest.STATUS_PAID) and r.start_datetime > now
            ],
            'completed': [r for r in requests if r.status == HireRequest.STATUS_COMPLETED],
            'cancelled': [
                r for r in requests if r.status in (HireRequest.STATUS_REJECTED, HireRequest.STATUS_CANCELLED)
            ],
        }
        if caregiver is None:
            rated = set(
                Rating.objects.filter(hire_request__in=groups['completed']).values_list('hire_request_id', flat=True)
            )
            groups['awaiting_payment'] = [r for r in requests if r.status == HireRequest.STATUS_ACCEPTED]
            groups['awaiting_rating'] = [r for r in groups['completed'] if r.pk not in rated]

        data = {name: HireRequestSerializer(items, many=True).data for name, items in groups.items()}
        data['role'] = 'caregiver' if caregiver else 'client'
        if caregiver is not None:
            data['missing_profile_fields'] = caregiver.missing_profile_fields()
        return Response(data)


class PaymentCustomerView(generics.GenericAPIView):
    """Register the current client with the payment provider."""

    serializer_class = PaymentCustomerSerializer
    permission_classes = [IsClient]

    def post(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        client = request.user.clientprofile
        if client.cpf_cnpj != serializer.validated_data['cpf_cnpj']:
            client.cpf_cnpj = serializer.validated_data['cpf_cnpj']
            client.asaas_customer_id = ''
            client.save(update_fields=['cpf_cnpj', 'asaas_customer_id'])

        if not settings.ASAAS_API_KEY:
            raise PaymentGatewayError('Payment provider is not configured')
        with AsaasClient(settings.ASAAS_API_KEY) as gateway:
            customer_id = ensure_asaas_customer(client, gateway)
        return Response({'asaas_customer_id': customer_id}, status=status.HTTP_201_CREATED)
