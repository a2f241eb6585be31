from django.apps import AppConfig


class RewardsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "apps.rewards"

    def ready(self) -> None:  # pragma: no cover - import side effects
        from . import handlers  # noqa: F401
