from django.apps import AppConfig


class FinancesConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.finances"

    def ready(self) -> None:  # pragma: no cover - import side effects
        from . import handlers  # noqa: F401
