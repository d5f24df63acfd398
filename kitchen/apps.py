from django.apps import AppConfig


class KitchenConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "kitchen"
    verbose_name = "ZedBites Kitchen"

    context = None

    def ready(self):
        from .context import build_context

        # boto3 clients are created lazily per call, so nothing here touches the network
        self.context = build_context()
