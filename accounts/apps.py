from django.apps import AppConfig
from django.db.models.signals import post_migrate


class AccountsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "accounts"

    def ready(self):
        from . import signals  # noqa: F401
        from .groups import setup_role_groups

        def handler(sender, **kwargs):
            # runs once per migrated app; permissions of later apps are
            # picked up on the following calls
            setup_role_groups()

        post_migrate.connect(handler, dispatch_uid="accounts_setup_role_groups")
