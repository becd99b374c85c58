from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'payments'
    verbose_name = 'Donations'

    def ready(self):  # pragma: no cover
        from . import signals  # noqa: F401
