import django_filters

from .models import CaregiverProfile, HireRequest


class CaregiverFilter(django_filters.FilterSet):
    specialty = django_filters.CharFilter(field_name='specialties__code', distinct=True)
    min_rate = django_filters.NumberFilter(field_name='hourly_rate', lookup_expr='gte')
    max_rate = django_filters.NumberFilter(field_name='hourly_rate', lookup_expr='lte')
    min_rating = django_filters.NumberFilter(field_name='rating_average', lookup_expr='gte')
    weekday = django_filters.NumberFilter(field_name='availabilities__weekday', distinct=True)

    class Meta:
        model = CaregiverProfile
        fields = ['verified']


class HireRequestFilter(django_filters.FilterSet):
    date_from = django_filters.DateFilter(field_name='date', lookup_expr='gte')
    date_to = django_filters.DateFilter(field_name='date', lookup_expr='lte')

    class Meta:
        model = HireRequest
        fields = ['status', 'date']
