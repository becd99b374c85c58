import uuid

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models


def generate_transaction_id():
    return f"LIFT-{uuid.uuid4().hex.upper()}"


class Donation(models.Model):
    METHOD_MPESA = 'mpesa'
    METHOD_CARD = 'card'
    METHOD_BANK = 'bank'
    METHOD_PAYPAL = 'paypal'
    METHOD_CHOICES = [
        (METHOD_MPESA, "M-Pesa (mobile money)"),
        (METHOD_CARD, "Card"),
        (METHOD_BANK, "Bank transfer"),
        (METHOD_PAYPAL, "PayPal"),
    ]
    CURRENCY_CHOICES = [
        ("KES", "KES"),
        ("USD", "USD"),
        ("EUR", "EUR"),
        ("GBP", "GBP"),
    ]

    STATUS_PENDING = 'pending'
    STATUS_PROCESSING = 'processing'
    STATUS_COMPLETED = 'completed'
    STATUS_FAILED = 'failed'
    STATUS_REFUNDED = 'refunded'
    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_PROCESSING, "Processing"),
        (STATUS_COMPLETED, "Completed"),
        (STATUS_FAILED, "Failed"),
        (STATUS_REFUNDED, "Refunded"),
    ]
    # Allowed payment status changes: target -> statuses it may be reached from
    TRANSITIONS = {
        STATUS_PROCESSING: (STATUS_PENDING,),
        STATUS_COMPLETED: (STATUS_PENDING, STATUS_PROCESSING),
        STATUS_FAILED: (STATUS_PENDING, STATUS_PROCESSING),
        STATUS_REFUNDED: (STATUS_COMPLETED,),
    }

    donor = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='donations')
    campaign = models.ForeignKey('campaigns.Campaign', on_delete=models.PROTECT, related_name='donations')
    amount = models.PositiveIntegerField(
        validators=[MinValueValidator(100)],
        help_text="Gross amount in the smallest currency unit",
    )
    currency = models.CharField(max_length=8, choices=CURRENCY_CHOICES, default="KES")
    payment_method = models.CharField(max_length=12, choices=METHOD_CHOICES)
    payment_status = models.CharField(max_length=12, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    transaction_id = models.CharField(max_length=64, unique=True, default=generate_transaction_id, editable=False)
    mpesa_receipt_number = models.CharField(max_length=64, blank=True)
    gateway_reference = models.CharField(max_length=64, blank=True)
    message = models.CharField(max_length=500, blank=True)
    anonymous = models.BooleanField(default=False)
    receive_updates = models.BooleanField(default=True)
    # Fee snapshot, computed once when the donation is created
    platform_fee = models.PositiveIntegerField(default=0)
    payment_processing_fee = models.PositiveIntegerField(default=0)
    net_amount = models.PositiveIntegerField()
    receipt_sent = models.BooleanField(default=False)
    receipt_sent_at = models.DateTimeField(null=True, blank=True)
    tax_deductible = models.BooleanField(default=False)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.CharField(max_length=255, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    refund_reason = models.TextField(blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)
    refunded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='+'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ('-created_at',)
        indexes = [
            models.Index(fields=['donor', '-created_at'], name='donation_donor_created_idx'),
            models.Index(fields=['campaign', '-created_at'], name='donation_campaign_created_idx'),
        ]

    def __str__(self):
        return f"Donation {self.transaction_id} - {self.amount} {self.currency} - {self.payment_status}"

    @classmethod
    def sources_for(cls, target):
        return cls.TRANSITIONS.get(target, ())

    def can_transition_to(self, target):
        return self.payment_status in self.sources_for(target)
