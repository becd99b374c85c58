import math

from django.conf import settings
from django.core.validators import MaxLengthValidator, MaxValueValidator, MinLengthValidator, MinValueValidator
from django.db import models
from django.db.models import F
from django.utils import timezone


class Campaign(models.Model):
    """A student's funding request. Donations only reach approved, active campaigns."""
    STATUS_PENDING = 'pending'
    STATUS_APPROVED = 'approved'
    STATUS_REJECTED = 'rejected'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'
    STATUS_CHOICES = (
        (STATUS_PENDING, 'Pending review'),
        (STATUS_APPROVED, 'Approved'),
        (STATUS_REJECTED, 'Rejected'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    )
    FUNDING_TYPE_CHOICES = (
        ('tuition', 'Tuition'),
        ('exam', 'Exam fees'),
        ('books', 'Books'),
        ('accommodation', 'Accommodation'),
        ('medical', 'Medical'),
        ('research', 'Research'),
        ('other', 'Other'),
    )
    # Fields a student may no longer change once the application is approved
    FROZEN_WHEN_APPROVED = ('amount_needed', 'funding_type', 'institution', 'course')
    # Maintained by the donation ledger only, never written from a loaded instance
    LEDGER_FIELDS = ('amount_raised', 'donor_count', 'completed_at')
    APPROVABLE_FROM = (STATUS_PENDING, STATUS_REJECTED)
    REJECTABLE_FROM = (STATUS_PENDING, STATUS_APPROVED)

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='campaigns')
    institution = models.CharField(max_length=200)
    course = models.CharField(max_length=200)
    year_of_study = models.PositiveSmallIntegerField(validators=[MinValueValidator(1), MaxValueValidator(10)])
    student_id = models.CharField(max_length=50, blank=True)
    amount_needed = models.PositiveIntegerField(
        validators=[MinValueValidator(1000)],
        help_text="Goal in the smallest currency unit",
    )
    amount_raised = models.PositiveBigIntegerField(default=0)
    donor_count = models.PositiveIntegerField(default=0)
    funding_type = models.CharField(max_length=20, choices=FUNDING_TYPE_CHOICES)
    story = models.TextField(validators=[MinLengthValidator(100), MaxLengthValidator(2000)])
    status = models.CharField(max_length=12, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    urgent = models.BooleanField(default=False)
    deadline = models.DateTimeField(null=True, blank=True)
    admin_notes = models.TextField(blank=True)
    verified_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name='verified_campaigns'
    )
    verified_at = models.DateTimeField(null=True, blank=True)
    views = models.PositiveIntegerField(default=0)
    shares = models.PositiveIntegerField(default=0)
    completed_at = models.DateTimeField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created = models.DateTimeField(auto_now_add=True)
    updated = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ('-created',)
        indexes = [
            models.Index(fields=['status', 'is_active'], name='campaign_status_active_idx'),
            models.Index(fields=['-urgent', '-created'], name='campaign_urgent_created_idx'),
        ]

    def __str__(self):
        return f"{self.user} - {self.course} ({self.get_status_display()})"

    @property
    def progress_percentage(self):
        if not self.amount_needed:
            return 0
        return min(round(self.amount_raised / self.amount_needed * 100), 100)

    @property
    def remaining_amount(self):
        return max(self.amount_needed - self.amount_raised, 0)

    @property
    def days_left(self):
        if not self.deadline:
            return None
        seconds = (self.deadline - timezone.now()).total_seconds()
        return max(math.ceil(seconds / 86400), 0)

    @property
    def is_accepting_donations(self):
        return self.is_active and self.status == self.STATUS_APPROVED

    def approve(self, admin_user):
        """Approve a pending or rejected application. Returns False if the status moved meanwhile."""
        now = timezone.now()
        updated = Campaign.objects.filter(
            pk=self.pk, status__in=self.APPROVABLE_FROM
        ).update(status=self.STATUS_APPROVED, verified_by=admin_user, verified_at=now, updated=now)
        if updated:
            self.status = self.STATUS_APPROVED
            self.verified_by = admin_user
            self.verified_at = now
            # Donations confirmed while it was under review may already cover the goal
            if Campaign.complete_if_funded(self.pk, now):
                self.status = self.STATUS_COMPLETED
                self.completed_at = now
        return bool(updated)

    @classmethod
    def complete_if_funded(cls, pk, now=None):
        """Move an approved campaign that reached its goal to completed. Returns True for the call that did it."""
        now = now or timezone.now()
        completed = cls.objects.filter(
            pk=pk,
            status=cls.STATUS_APPROVED,
            amount_raised__gte=F('amount_needed'),
        ).update(status=cls.STATUS_COMPLETED, completed_at=now, updated=now)
        return completed == 1

    def reject(self, reason):
        now = timezone.now()
        updated = Campaign.objects.filter(
            pk=self.pk, status__in=self.REJECTABLE_FROM
        ).update(status=self.STATUS_REJECTED, admin_notes=reason, updated=now)
        if updated:
            self.status = self.STATUS_REJECTED
            self.admin_notes = reason
        return bool(updated)

    def cancel(self):
        now = timezone.now()
        Campaign.objects.filter(pk=self.pk).update(is_active=False, status=self.STATUS_CANCELLED, updated=now)
        self.is_active = False
        self.status = self.STATUS_CANCELLED

    def increment_counter(self, field):
        """Bump the public ``views`` or ``shares`` counter without a read-modify-write."""
        if field not in ('views', 'shares'):
            raise ValueError(f"Unknown counter: {field}")
        Campaign.objects.filter(pk=self.pk).update(**{field: F(field) + 1})


class CampaignUpdate(models.Model):
    """Progress post written by the student for their donors."""
    campaign = models.ForeignKey(Campaign, on_delete=models.CASCADE, related_name='updates')
    title = models.CharField(max_length=200)
    message = models.TextField()
    created = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ('-created',)

    def __str__(self):
        return f"{self.title} ({self.campaign_id})"
