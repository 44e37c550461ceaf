"""
Django signals for automatic profile creation and role assignment
"""
from django.db.models.signals import post_save
from django.dispatch import receiver
from django.contrib.auth.models import User
from .models import Profile, Store


@receiver(post_save, sender=User)
def create_or_update_user_profile(sender, instance, created, **kwargs):
    """
    Create a Profile for new users. Superusers are the platform SuperAdmin.
    """
    profile, _ = Profile.objects.get_or_create(user=instance)

    if instance.is_superuser and profile.role != 'SUPER_ADMIN':
        profile.role = 'SUPER_ADMIN'
        profile.save(update_fields=['role'])


@receiver(post_save, sender=Store)
def link_store_owner_profile(sender, instance, **kwargs):
    """The owner of a store works in it as STORE_OWNER."""
    if not instance.owner_id:
        return
    profile, _ = Profile.objects.get_or_create(user=instance.owner)
    changed = []
    if profile.store_id is None:
        profile.store = instance
        changed.append('store')
    if profile.role == 'STAFF':
        profile.role = 'STORE_OWNER'
        changed.append('role')
    if changed:
        profile.save(update_fields=changed)
