import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('core', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Subscription',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('plan_id', models.CharField(choices=[('basic-monthly', 'Basic Monthly'), ('premium-monthly', 'Premium Monthly'), ('basic-yearly', 'Basic Yearly'), ('premium-yearly', 'Premium Yearly')], max_length=30)),
                ('status', models.CharField(choices=[('TRIAL', 'Trial'), ('ACTIVE', 'Active'), ('EXPIRED', 'Expired'), ('SUSPENDED', 'Suspended'), ('CANCELLED', 'Cancelled')], default='TRIAL', max_length=10)),
                ('is_trial', models.BooleanField(default=False)),
                ('current_period_start', models.DateTimeField()),
                ('current_period_end', models.DateTimeField()),
                ('last_payment_date', models.DateTimeField(blank=True, null=True)),
                ('last_payment_amount', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ('mpesa_receipt', models.CharField(blank=True, max_length=50)),
                ('payment_method', models.CharField(blank=True, max_length=30)),
                ('payment_reference', models.CharField(blank=True, max_length=100)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('store', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='subscription', to='core.store')),
            ],
            options={
                'ordering': ['current_period_end'],
                'indexes': [
                    models.Index(fields=['status', 'current_period_end'], name='subscription_status_end_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='PaymentHistory',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('amount', models.DecimalField(decimal_places=2, max_digits=10)),
                ('currency', models.CharField(default='KES', max_length=3)),
                ('payment_method', models.CharField(max_length=30)),
                ('status', models.CharField(choices=[('PENDING', 'Pending'), ('COMPLETED', 'Completed'), ('FAILED', 'Failed')], default='COMPLETED', max_length=10)),
                ('plan_id', models.CharField(blank=True, max_length=30)),
                ('mpesa_receipt', models.CharField(blank=True, max_length=50)),
                ('reference', models.CharField(blank=True, max_length=100)),
                ('notes', models.TextField(blank=True)),
                ('paid_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('store', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='payment_history', to='core.store')),
                ('subscription', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='payments', to='billing.subscription')),
            ],
            options={
                'verbose_name_plural': 'Payment history',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['status', 'paid_at'], name='payment_status_paid_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='PaymentReminder',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('reminder_type', models.CharField(choices=[('TRIAL_ENDING', 'Trial Ending'), ('PAYMENT_DUE', 'Payment Due'), ('OVERDUE', 'Overdue'), ('FINAL_WARNING', 'Final Warning'), ('SUSPENDED', 'Suspended')], max_length=20)),
                ('days_before_due', models.IntegerField(blank=True, null=True)),
                ('days_overdue', models.IntegerField(blank=True, null=True)),
                ('phone_number', models.CharField(blank=True, max_length=15)),
                ('message', models.TextField()),
                ('sms_sent', models.BooleanField(default=False)),
                ('sent_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('store', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='payment_reminders', to='core.store')),
                ('subscription', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='reminders', to='billing.subscription')),
            ],
            options={
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='C2BTransaction',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('trans_id', models.CharField(max_length=50, unique=True)),
                ('transaction_type', models.CharField(blank=True, max_length=30)),
                ('trans_time', models.DateTimeField(blank=True, null=True)),
                ('amount', models.DecimalField(decimal_places=2, max_digits=12)),
                ('business_short_code', models.CharField(blank=True, max_length=20)),
                ('bill_ref_number', models.CharField(blank=True, max_length=50)),
                ('msisdn', models.CharField(blank=True, max_length=20)),
                ('first_name', models.CharField(blank=True, max_length=100)),
                ('middle_name', models.CharField(blank=True, max_length=100)),
                ('last_name', models.CharField(blank=True, max_length=100)),
                ('status', models.CharField(choices=[('VALIDATING', 'Validating'), ('COMPLETED', 'Completed'), ('PROCESSED', 'Processed'), ('UNMATCHED', 'Unmatched'), ('CREDITED', 'Credited')], default='VALIDATING', max_length=12)),
                ('subscription_activated', models.BooleanField(default=False)),
                ('plan_id', models.CharField(blank=True, max_length=30)),
                ('notes', models.TextField(blank=True)),
                ('raw_data', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('processed_at', models.DateTimeField(blank=True, null=True)),
                ('store', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='c2b_transactions', to='core.store')),
            ],
            options={
                'verbose_name': 'C2B transaction',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['status'], name='c2b_status_idx'),
                    models.Index(fields=['bill_ref_number'], name='c2b_bill_ref_idx'),
                ],
            },
        ),
    ]
