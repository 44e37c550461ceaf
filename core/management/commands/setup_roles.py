from django.core.management.base import BaseCommand
from django.contrib.auth.models import Group
from core.permissions import ROLE_PERMISSIONS, create_default_roles


class Command(BaseCommand):
    help = 'Create one auth group per DukaBook role'

    def handle(self, *args, **options):
        existing = set(Group.objects.filter(name__in=ROLE_PERMISSIONS.keys()).values_list('name', flat=True))
        create_default_roles()

        created_roles = [role for role in ROLE_PERMISSIONS if role not in existing]
        for role_name in ROLE_PERMISSIONS:
            if role_name in created_roles:
                self.stdout.write(self.style.SUCCESS(f'✓ Created role: {role_name}'))
            else:
                self.stdout.write(f'○ Role already exists: {role_name}')

        if created_roles:
            self.stdout.write(
                self.style.SUCCESS(f'\n✓ Successfully created {len(created_roles)} new roles!')
            )
        else:
            self.stdout.write(self.style.WARNING('All roles already exist.'))

        self.stdout.write(self.style.SUCCESS('\nRole Permissions:'))
        self.stdout.write('-' * 60)
        for role, permissions in ROLE_PERMISSIONS.items():
            self.stdout.write(f'{role:15} → {", ".join(permissions)}')
