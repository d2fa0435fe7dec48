from django.contrib import admin

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


@admin.register(Specialty)
class SpecialtyAdmin(admin.ModelAdmin):
    list_display = ('code', 'name')
    search_fields = ('code', 'name')


@admin.register(ClientProfile)
class ClientProfileAdmin(admin.ModelAdmin):
    list_display = ('user', 'phone_number', 'asaas_customer_id')
    search_fields = ('user__username', 'user__email', 'cpf_cnpj')


class CaregiverAvailabilityInline(admin.TabularInline):
    model = CaregiverAvailability
    extra = 1


@admin.register(CaregiverProfile)
class CaregiverProfileAdmin(admin.ModelAdmin):
    list_display = ('user', 'hourly_rate', 'verified', 'rating_average', 'rating_count')
    list_filter = ('verified', 'specialties')
    search_fields = ('user__username', 'user__first_name', 'user__last_name')
    filter_horizontal = ('specialties',)
    readonly_fields = ('rating_average', 'rating_count', 'rating_histogram')
    inlines = [CaregiverAvailabilityInline]


@admin.register(HireRequest)
class HireRequestAdmin(admin.ModelAdmin):
    list_display = ('client', 'caregiver', 'date', 'start_time', 'end_time', 'status', 'total_amount')
    list_filter = ('status', 'date')
    search_fields = ('client__user__username', 'caregiver__user__username')
    readonly_fields = ('platform_fee', 'caregiver_amount', 'paid_at')


@admin.register(Rating)
class RatingAdmin(admin.ModelAdmin):
    list_display = ('hire_request', 'rating', 'author', 'caregiver', 'created_at')
    list_filter = ('rating',)


@admin.register(Favorite)
class FavoriteAdmin(admin.ModelAdmin):
    list_display = ('client', 'caregiver', 'created_at')


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ('recipient', 'type', 'priority', 'status', 'channel', 'created_at')
    list_filter = ('type', 'status', 'priority')


@admin.register(TransactionLog)
class TransactionLogAdmin(admin.ModelAdmin):
    list_display = ('hire_request', 'user', 'direction', 'amount', 'created_at')
    list_filter = ('direction',)
