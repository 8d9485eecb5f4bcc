"""Django Medstock app configuration."""

from django.apps import AppConfig


class DjangoMedstockConfig(AppConfig):
    """Configuration for django-medstock app."""

    name = "django_medstock"
    label = "django_medstock"
    verbose_name = "Medicine Stock"
