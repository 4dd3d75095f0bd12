from django.apps import AppConfig


class PortalmanConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "portalman"
    verbose_name = "Portalman - Customer Portal Authentication"
