import django.core.validators
import django.db.models.deletion
import payments.models
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ('campaigns', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Donation',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('amount', models.PositiveIntegerField(help_text='Gross amount in the smallest currency unit', validators=[django.core.validators.MinValueValidator(100)])),
                ('currency', models.CharField(choices=[('KES', 'KES'), ('USD', 'USD'), ('EUR', 'EUR'), ('GBP', 'GBP')], default='KES', max_length=8)),
                ('payment_method', models.CharField(choices=[('mpesa', 'M-Pesa (mobile money)'), ('card', 'Card'), ('bank', 'Bank transfer'), ('paypal', 'PayPal')], max_length=12)),
                ('payment_status', models.CharField(choices=[('pending', 'Pending'), ('processing', 'Processing'), ('completed', 'Completed'), ('failed', 'Failed'), ('refunded', 'Refunded')], db_index=True, default='pending', max_length=12)),
                ('transaction_id', models.CharField(default=payments.models.generate_transaction_id, editable=False, max_length=64, unique=True)),
                ('mpesa_receipt_number', models.CharField(blank=True, max_length=64)),
                ('gateway_reference', models.CharField(blank=True, max_length=64)),
                ('message', models.CharField(blank=True, max_length=500)),
                ('anonymous', models.BooleanField(default=False)),
                ('receive_updates', models.BooleanField(default=True)),
                ('platform_fee', models.PositiveIntegerField(default=0)),
                ('payment_processing_fee', models.PositiveIntegerField(default=0)),
                ('net_amount', models.PositiveIntegerField()),
                ('receipt_sent', models.BooleanField(default=False)),
                ('receipt_sent_at', models.DateTimeField(blank=True, null=True)),
                ('tax_deductible', models.BooleanField(default=False)),
                ('ip_address', models.GenericIPAddressField(blank=True, null=True)),
                ('user_agent', models.CharField(blank=True, max_length=255)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('refund_reason', models.TextField(blank=True)),
                ('refunded_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('campaign', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='donations', to='campaigns.campaign')),
                ('donor', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='donations', to=settings.AUTH_USER_MODEL)),
                ('refunded_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ('-created_at',),
                'indexes': [
                    models.Index(fields=['donor', '-created_at'], name='donation_donor_created_idx'),
                    models.Index(fields=['campaign', '-created_at'], name='donation_campaign_created_idx'),
                ],
            },
        ),
    ]
