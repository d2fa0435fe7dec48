from rest_framework import permissions

from .models import CaregiverProfile, ClientProfile


def get_client_profile(user):
    try:
        return user.clientprofile
    except (AttributeError, ClientProfile.DoesNotExist):
        return None


def get_caregiver_profile(user):
    try:
        return user.caregiverprofile
    except (AttributeError, CaregiverProfile.DoesNotExist):
        return None


class IsClient(permissions.BasePermission):
    message = 'Only clients can perform this action'

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated and get_client_profile(request.user))


class IsCaregiver(permissions.BasePermission):
    message = 'Only caregivers can perform this action'

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated and get_caregiver_profile(request.user))
