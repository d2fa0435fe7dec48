"""Serializers for the marketplace API."""
from __future__ import annotations

import re
from datetime import time
from typing import Any

from django.contrib.auth.models import User
from django.db import transaction
from rest_framework import serializers

from .models import (
    CaregiverAvailability,
    CaregiverProfile,
    ClientProfile,
    Favorite,
    HireRequest,
    Notification,
    Rating,
    Specialty,
    TransactionLog,
)
from .permissions import get_client_profile
from .scheduling import book_hire_request

PHONE_RE = re.compile(r'^\+?[0-9]{10,15}$')
IMAGE_URL_RE = re.compile(r'^(https?://).+\.(jpg|jpeg|png|gif)$', re.IGNORECASE)


def validate_phone_number(value: str) -> str:
    if value and not PHONE_RE.match(value):
        raise serializers.ValidationError('Invalid phone number')
    return value


def validate_image_url(value: str) -> str:
    if value and not IMAGE_URL_RE.match(value):
        raise serializers.ValidationError('Invalid image URL')
    return value


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'username', 'email', 'first_name', 'last_name']


class SpecialtySerializer(serializers.ModelSerializer):
    class Meta:
        model = Specialty
        fields = ['id', 'code', 'name', 'description']


class ProfileSummarySerializer(serializers.Serializer):
    id = serializers.UUIDField(read_only=True)
    full_name = serializers.CharField(read_only=True)


class ProfileUpdateMixin:
    """Lets ``first_name``/``last_name`` be written through the profile."""

    def update(self, instance, validated_data):
        user_data = validated_data.pop('user', {})
        for attr, value in user_data.items():
            setattr(instance.user, attr, value)
        if user_data:
            instance.user.save(update_fields=list(user_data))
        return super().update(instance, validated_data)


class ClientProfileSerializer(ProfileUpdateMixin, serializers.ModelSerializer):
    user = UserSerializer(read_only=True)
    first_name = serializers.CharField(source='user.first_name', required=False, allow_blank=True)
    last_name = serializers.CharField(source='user.last_name', required=False, allow_blank=True)
    phone_number = serializers.CharField(required=False, allow_blank=True, validators=[validate_phone_number])

    class Meta:
        model = ClientProfile
        fields = ['id', 'user', 'first_name', 'last_name', 'phone_number', 'address', 'cpf_cnpj', 'asaas_customer_id']
        read_only_fields = ['id', 'asaas_customer_id']


class CaregiverProfileSerializer(ProfileUpdateMixin, serializers.ModelSerializer):
    user = UserSerializer(read_only=True)
    first_name = serializers.CharField(source='user.first_name', required=False, allow_blank=True)
    last_name = serializers.CharField(source='user.last_name', required=False, allow_blank=True)
    full_name = serializers.CharField(read_only=True)
    phone_number = serializers.CharField(required=False, allow_blank=True, validators=[validate_phone_number])
    image_url = serializers.URLField(required=False, allow_blank=True, validators=[validate_image_url])
    specialties = serializers.SlugRelatedField(
        many=True, slug_field='code', queryset=Specialty.objects.all(), required=False
    )
    missing_profile_fields = serializers.SerializerMethodField()

    class Meta:
        model = CaregiverProfile
        fields = [
            'id',
            'user',
            'first_name',
            'last_name',
            'full_name',
            'phone_number',
            'address',
            'bio',
            'hourly_rate',
            'specialties',
            'image_url',
            'verified',
            'rating_average',
            'rating_count',
            'rating_histogram',
            'missing_profile_fields',
        ]
        read_only_fields = ['id', 'verified', 'rating_average', 'rating_count', 'rating_histogram']

    def get_missing_profile_fields(self, obj: CaregiverProfile) -> list[str]:
        return obj.missing_profile_fields()

    def validate_hourly_rate(self, value):
        if value < 0:
            raise serializers.ValidationError('Hourly rate cannot be negative')
        return value


class CaregiverListSerializer(serializers.ModelSerializer):
    full_name = serializers.CharField(read_only=True)
    specialties = serializers.SlugRelatedField(many=True, slug_field='code', read_only=True)

    class Meta:
        model = CaregiverProfile
        fields = [
            'id',
            'full_name',
            'bio',
            'specialties',
            'hourly_rate',
            'image_url',
            'verified',
            'rating_average',
            'rating_count',
        ]


class CaregiverDetailSerializer(CaregiverListSerializer):
    availabilities = serializers.SerializerMethodField()
    ratings = serializers.SerializerMethodField()

    class Meta(CaregiverListSerializer.Meta):
        fields = CaregiverListSerializer.Meta.fields + ['rating_histogram', 'availabilities', 'ratings']

    def get_availabilities(self, obj: CaregiverProfile):
        return [
            {
                'weekday': a.weekday,
                'start_time': a.start_time,
                'end_time': a.end_time,
            }
            for a in obj.availabilities.all()
        ]

    def get_ratings(self, obj: CaregiverProfile):
        ratings = obj.ratings.select_related('author').all()[:10]
        return [
            {
                'rating': r.rating,
                'comment': r.comment,
                'author': r.author.get_full_name() or r.author.username,
                'created_at': r.created_at,
            }
            for r in ratings
        ]


class RegistrationSerializer(serializers.Serializer):
    username = serializers.CharField(max_length=150)
    email = serializers.EmailField(required=False, allow_blank=True)
    password = serializers.CharField(write_only=True, min_length=8)
    first_name = serializers.CharField(required=False, allow_blank=True, max_length=150)
    last_name = serializers.CharField(required=False, allow_blank=True, max_length=150)
    phone_number = serializers.CharField(required=False, allow_blank=True, validators=[validate_phone_number])
    address = serializers.CharField(required=False, allow_blank=True, max_length=255)

    USER_FIELDS = ('username', 'email', 'password', 'first_name', 'last_name')

    def validate_username(self, value: str) -> str:
        if User.objects.filter(username__iexact=value).exists():
            raise serializers.ValidationError('This username is already taken')
        return value

    def _create_user(self, validated_data: dict[str, Any]) -> User:
        user_data = {field: validated_data.pop(field, '') for field in self.USER_FIELDS}
        return User.objects.create_user(**user_data)


class ClientRegistrationSerializer(RegistrationSerializer):
    cpf_cnpj = serializers.CharField(required=False, allow_blank=True, max_length=20)

    @transaction.atomic
    def create(self, validated_data: dict[str, Any]) -> ClientProfile:
        user = self._create_user(validated_data)
        return ClientProfile.objects.create(user=user, **validated_data)

    def to_representation(self, instance):
        return ClientProfileSerializer(instance, context=self.context).data


class CaregiverRegistrationSerializer(RegistrationSerializer):
    bio = serializers.CharField(required=False, allow_blank=True)
    hourly_rate = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, required=False)
    image_url = serializers.URLField(required=False, allow_blank=True, validators=[validate_image_url])
    specialties = serializers.SlugRelatedField(
        many=True, slug_field='code', queryset=Specialty.objects.all(), required=False
    )

    @transaction.atomic
    def create(self, validated_data: dict[str, Any]) -> CaregiverProfile:
        specialties = validated_data.pop('specialties', [])
        user = self._create_user(validated_data)
        profile = CaregiverProfile.objects.create(user=user, **validated_data)
        profile.specialties.set(specialties)
        return profile

    def to_representation(self, instance):
        return CaregiverProfileSerializer(instance, context=self.context).data


class AvailabilitySerializer(serializers.ModelSerializer):
    class Meta:
        model = CaregiverAvailability
        fields = ['id', 'weekday', 'start_time', 'end_time']
        read_only_fields = ['id']

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        start = attrs.get('start_time', getattr(self.instance, 'start_time', None))
        end = attrs.get('end_time', getattr(self.instance, 'end_time', None))
        if start is not None and end is not None and end <= start:
            raise serializers.ValidationError('End time must be after start time')
        return attrs


class TimeSlotSerializer(serializers.Serializer):
    start_time = serializers.TimeField(format='%H:%M')
    end_time = serializers.TimeField(format='%H:%M')
    is_available = serializers.BooleanField()


class HireRequestSerializer(serializers.ModelSerializer):
    client = ProfileSummarySerializer(read_only=True)
    caregiver = ProfileSummarySerializer(read_only=True)
    duration_hours = serializers.IntegerField(read_only=True)
    is_rated = serializers.BooleanField(read_only=True)

    class Meta:
        model = HireRequest
        fields = [
            'id',
            'client',
            'caregiver',
            'date',
            'start_time',
            'end_time',
            'duration_hours',
            'status',
            'notes',
            'hourly_rate',
            'total_amount',
            'caregiver_amount',
            'platform_fee',
            'paid_at',
            'is_rated',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class HireRequestCreateSerializer(serializers.Serializer):
    caregiver_id = serializers.UUIDField(write_only=True)
    date = serializers.DateField()
    start_time = serializers.TimeField()
    end_time = serializers.TimeField(required=False)
    duration_hours = serializers.IntegerField(required=False, min_value=1, write_only=True)
    notes = serializers.CharField(required=False, allow_blank=True, default='')

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        client = get_client_profile(self.context['request'].user)
        if client is None:
            raise serializers.ValidationError('Only clients can create hire requests')

        try:
            caregiver = CaregiverProfile.objects.get(id=attrs['caregiver_id'])
        except CaregiverProfile.DoesNotExist as exc:
            raise serializers.ValidationError('Caregiver not found') from exc
        if caregiver.user_id == client.user_id:
            raise serializers.ValidationError('You cannot hire yourself')

        duration = attrs.pop('duration_hours', None)
        if 'end_time' not in attrs:
            if duration is None:
                raise serializers.ValidationError('Provide either end_time or duration_hours')
            end_hour = attrs['start_time'].hour + duration
            if end_hour > 23:
                raise serializers.ValidationError('The requested duration runs past the end of the day')
            attrs['end_time'] = time(end_hour, attrs['start_time'].minute)

        attrs.update({'client': client, 'caregiver': caregiver})
        return attrs

    def create(self, validated_data: dict[str, Any]) -> HireRequest:
        return book_hire_request(
            client=validated_data['client'],
            caregiver=validated_data['caregiver'],
            day=validated_data['date'],
            start=validated_data['start_time'],
            end=validated_data['end_time'],
            notes=validated_data.get('notes', ''),
        )

    def to_representation(self, instance):
        return HireRequestSerializer(instance, context=self.context).data


class RatingSerializer(serializers.ModelSerializer):
    author_name = serializers.SerializerMethodField()

    class Meta:
        model = Rating
        fields = ['id', 'hire_request', 'caregiver', 'author_name', 'rating', 'comment', 'created_at']
        read_only_fields = fields

    def get_author_name(self, obj: Rating) -> str:
        return obj.author.get_full_name() or obj.author.username


class RatingCreateSerializer(serializers.Serializer):
    rating = serializers.IntegerField(min_value=1, max_value=5)
    comment = serializers.CharField(required=False, allow_blank=True, default='')


class FavoriteSerializer(serializers.ModelSerializer):
    caregiver = CaregiverListSerializer(read_only=True)
    caregiver_id = serializers.UUIDField(write_only=True)

    class Meta:
        model = Favorite
        fields = ['id', 'caregiver', 'caregiver_id', 'created_at']
        read_only_fields = ['id', 'created_at']

    def validate_caregiver_id(self, value):
        if not CaregiverProfile.objects.filter(id=value).exists():
            raise serializers.ValidationError('Caregiver not found')
        return value

    def create(self, validated_data: dict[str, Any]) -> Favorite:
        favorite, _ = Favorite.objects.get_or_create(
            client=validated_data['client'], caregiver_id=validated_data['caregiver_id']
        )
        return favorite


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = ['id', 'type', 'title', 'message', 'data', 'status', 'priority', 'channel', 'created_at', 'read_at']
        read_only_fields = fields


class TransactionLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = TransactionLog
        fields = ['id', 'hire_request', 'direction', 'amount', 'description', 'created_at']


class EarningsSummarySerializer(serializers.Serializer):
    total_earnings = serializers.DecimalField(max_digits=12, decimal_places=2)
    last_30_days = serializers.DecimalField(max_digits=12, decimal_places=2)
    completed_count = serializers.IntegerField()
    pending_count = serializers.IntegerField()
    rating_average = serializers.DecimalField(max_digits=3, decimal_places=2)
    rating_count = serializers.IntegerField()


class PaymentCustomerSerializer(serializers.Serializer):
    cpf_cnpj = serializers.CharField(max_length=20)

    def validate_cpf_cnpj(self, value: str) -> str:
        digits = re.sub(r'\D', '', value)
        if len(digits) not in (11, 14):
            raise serializers.ValidationError('CPF must have 11 digits and CNPJ 14 digits')
        return digits
