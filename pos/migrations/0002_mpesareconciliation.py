import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ('core', '0001_initial'),
        ('pos', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='MpesaReconciliation',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('period_start', models.DateField()),
                ('period_end', models.DateField()),
                ('total_deposits', models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ('matched_amount', models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ('unmatched_amount', models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ('matched_count', models.IntegerField(default=0)),
                ('unmatched_count', models.IntegerField(default=0)),
                ('variance_amount', models.DecimalField(decimal_places=2, default=0, max_digits=12)),
                ('flagged_count', models.IntegerField(default=0)),
                ('status', models.CharField(choices=[('RECONCILED', 'Reconciled'), ('ISSUES_FOUND', 'Issues Found')], default='RECONCILED', max_length=15)),
                ('details', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('reconciled_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, to=settings.AUTH_USER_MODEL)),
                ('store', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='mpesa_reconciliations', to='core.store')),
            ],
            options={
                'ordering': ['-period_end', '-created_at'],
            },
        ),
    ]
