from django.apps import AppConfig


class TenantsConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'tenants'
    verbose_name = 'Schools (Multi-Tenant)'

    def ready(self):
        # Инвалидация кеша middleware + лимиты для новых школ
        import tenants.signals  # noqa: F401
