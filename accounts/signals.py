from django.db.models.signals import post_save
from django.dispatch import receiver

from .groups import sync_user_group
from .models import User


@receiver(post_save, sender=User, dispatch_uid="accounts_sync_user_group")
def user_saved(sender, instance, raw=False, **kwargs):
    if raw:
        return
    sync_user_group(instance)
