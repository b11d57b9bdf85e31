from django.apps import AppConfig


class SmartQRConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'smart_qr'
    verbose_name = 'Smart QR'
