from django.db import migrations
from decouple import config

def create_superuser(apps, schema_editor):
    User = apps.get_model('auth', 'User')
    Profile = apps.get_model('core', 'Profile')

    username = config('DJANGO_SUPERUSER_USERNAME', default='')
    email = config('DJANGO_SUPERUSER_EMAIL', default='')
    password = config('DJANGO_SUPERUSER_PASSWORD', default='')

    if username and password and not User.objects.filter(username=username).exists():
        user = User.objects.create_superuser(
            username=username,
            email=email,
            password=password
        )
        Profile.objects.update_or_create(user=user, defaults={'role': 'SUPER_ADMIN'})

class Migration(migrations.Migration):
    dependencies = [
        ('core', '0001_initial'),
    ]

    operations = [
        migrations.RunPython(create_superuser, migrations.RunPython.noop),
    ]
