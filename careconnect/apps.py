from django.apps import AppConfig


class CareConnectConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'careconnect'
    verbose_name = 'CareConnect'
