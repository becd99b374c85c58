from django.contrib.auth.models import AbstractUser
from django.core.validators import RegexValidator
from django.db import models
from django.db.models import F


class User(AbstractUser):
    """
    Platform account. Donors carry their lifetime giving totals on the row.
    """
    ROLE_STUDENT = 'student'
    ROLE_DONOR = 'donor'
    ROLE_ADMIN = 'admin'
    ROLE_CHOICES = (
        (ROLE_STUDENT, 'Student'),
        (ROLE_DONOR, 'Donor'),
        (ROLE_ADMIN, 'Administrator'),
    )

    phone_regex = RegexValidator(
        regex=r'^(\+254|0)[0-9]{9}$',
        message="Phone number must be a Kenyan number: '+254XXXXXXXXX' or '07XXXXXXXX'."
    )

    role = models.CharField(max_length=10, choices=ROLE_CHOICES, default=ROLE_DONOR)
    phone = models.CharField(validators=[phone_regex], max_length=17, blank=True)
    verified = models.BooleanField(default=False)
    # Donor aggregates, gross amounts in the smallest currency unit
    total_donations = models.PositiveBigIntegerField(default=0)
    donation_count = models.PositiveIntegerField(default=0)

    def __str__(self):
        return f"{self.first_name} {self.last_name} ({self.role})"

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_platform_admin(self):
        return self.role == self.ROLE_ADMIN or self.is_staff


def increment_donor_totals(user_id, amount, count=1):
    """Atomically add to a donor's lifetime totals. Returns True if the row exists."""
    updated = User.objects.filter(pk=user_id).update(
        total_donations=F('total_donations') + amount,
        donation_count=F('donation_count') + count,
    )
    return updated == 1
