from django.core.management.base import BaseCommand
from django.contrib.auth.models import User
from core.models import Profile, Store


class Command(BaseCommand):
    help = 'Repair profile roles: superusers, store owners and everyone else'

    def _set_role(self, user, role, store=None):
        profile, _ = Profile.objects.get_or_create(user=user)
        changed = []
        if profile.role != role:
            profile.role = role
            changed.append('role')
        if store is not None and profile.store_id != store.id:
            profile.store = store
            changed.append('store')
        if not changed:
            return False
        profile.save(update_fields=changed)
        self.stdout.write(self.style.SUCCESS(f'✓ Set {user.username} role to {role}'))
        return True

    def handle(self, *args, **options):
        updated_count = 0

        for user in User.objects.filter(is_superuser=True):
            updated_count += self._set_role(user, 'SUPER_ADMIN')

        owned = Store.objects.filter(owner__isnull=False, owner__is_superuser=False).select_related('owner')
        owner_ids = set()
        for store in owned.order_by('created_at'):
            if store.owner_id in owner_ids:
                continue
            owner_ids.add(store.owner_id)
            updated_count += self._set_role(store.owner, 'STORE_OWNER', store)

        # Demote stale owner and superadmin roles
        stale = Profile.objects.filter(
            role__in=['SUPER_ADMIN', 'STORE_OWNER'], user__is_superuser=False,
        ).exclude(user_id__in=owner_ids)
        for profile in stale.select_related('user'):
            updated_count += self._set_role(profile.user, 'STAFF')

        if updated_count > 0:
            self.stdout.write(
                self.style.SUCCESS(f'\n✓ Successfully updated {updated_count} user profiles!')
            )
        else:
            self.stdout.write(self.style.WARNING('All profiles are already set correctly.'))
