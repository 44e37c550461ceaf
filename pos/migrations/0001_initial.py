import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ('core', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='BlindClose',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('close_date', models.DateField()),
                ('expected_cash', models.DecimalField(decimal_places=2, max_digits=12)),
                ('counted_cash', models.DecimalField(decimal_places=2, max_digits=12)),
                ('discrepancy_amount', models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ('discrepancy_type', models.CharField(choices=[('SHORTAGE', 'Shortage'), ('OVERAGE', 'Overage'), ('BALANCED', 'Balanced')], default='BALANCED', max_length=10)),
                ('verified_by_owner', models.BooleanField(default=False)),
                ('verified_at', models.DateTimeField(blank=True, null=True)),
                ('owner_notes', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('staff', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='blind_closes', to=settings.AUTH_USER_MODEL)),
                ('store', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='blind_closes', to='core.store')),
                ('verified_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='verified_blind_closes', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['-close_date'],
                'indexes': [
                    models.Index(fields=['store', 'verified_by_owner', 'close_date'], name='blindclose_unverified_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('store', 'close_date'), name='one_blind_close_per_store_day'),
                ],
            },
        ),
        migrations.CreateModel(
            name='CashAudit',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('register_date', models.DateField()),
                ('opening_balance', models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ('expected_closing', models.DecimalField(decimal_places=2, max_digits=12)),
                ('actual_closing', models.DecimalField(decimal_places=2, max_digits=12)),
                ('variance_amount', models.DecimalField(decimal_places=2, max_digits=12)),
                ('variance_percentage', models.DecimalField(decimal_places=2, max_digits=8)),
                ('is_fraud_suspect', models.BooleanField(default=False)),
                ('fraud_category', models.CharField(choices=[('OVERAGE', 'Overage'), ('SHORTAGE', 'Shortage'), ('NORMAL', 'Normal')], default='NORMAL', max_length=10)),
                ('severity', models.CharField(choices=[('HIGH', 'High'), ('MEDIUM', 'Medium'), ('LOW', 'Low')], default='LOW', max_length=10)),
                ('reconciled_at', models.DateTimeField(auto_now_add=True)),
                ('notes', models.TextField(blank=True)),
                ('reconciled_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
                ('store', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='cash_audits', to='core.store')),
            ],
            options={
                'ordering': ['-register_date', '-reconciled_at'],
                'indexes': [
                    models.Index(fields=['store', 'register_date'], name='cashaudit_store_date_idx'),
                ],
            },
        ),
    ]
