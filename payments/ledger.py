"""
Donation intake and the campaign ledger.

Every change to a campaign's ``amount_raised``/``donor_count`` goes through
``apply_credit``/``apply_debit`` as a single ``UPDATE ... SET x = x + n``, in
the same transaction as the donation status change that causes it. Status
changes on a donation are conditional updates on its current status, so a
donation is credited or refunded at most once.
"""
import logging
import time
from datetime import timedelta

from django.conf import settings
from django.db import DatabaseError, OperationalError, transaction
from django.db.models import F
from django.utils import timezone

from accounts.models import increment_donor_totals
from campaigns.models import Campaign
from .exceptions import (
    AlreadyRefunded,
    CampaignNotEligible,
    ConcurrencyConflict,
    DonationNotRefundable,
    InvalidInput,
    InvalidTransition,
    RefundUnauthorized,
    RefundWindowExpired,
)
from .fees import compute_fees
from .models import Donation
from .signals import campaign_goal_reached, donation_completed, donation_refunded

logger = logging.getLogger(__name__)

RETRY_BACKOFF_SECONDS = 0.05


def run_in_transaction(operation, description):
    """Run ``operation`` atomically, retrying when the database reports lock contention."""
    attempts = max(1, settings.DONATION_LEDGER_MAX_ATTEMPTS)
    for attempt in range(1, attempts + 1):
        try:
            with transaction.atomic():
                return operation()
        except OperationalError as exc:
            if attempt == attempts:
                logger.error("%s failed after %s attempts: %s", description, attempts, exc)
                raise ConcurrencyConflict() from exc
            logger.warning("%s hit %s, retrying (%s/%s)", description, exc, attempt, attempts)
            time.sleep(RETRY_BACKOFF_SECONDS * attempt)


def apply_credit(campaign_id, net_amount):
    """Add a completed donation to a campaign. Returns True if this credit reached the goal."""
    now = timezone.now()
    updated = Campaign.objects.filter(pk=campaign_id).update(
        amount_raised=F('amount_raised') + net_amount,
        donor_count=F('donor_count') + 1,
        updated=now,
    )
    if not updated:
        raise CampaignNotEligible('Student profile not found', not_found=True)
    # Only one transaction can move the campaign out of 'approved'
    return Campaign.complete_if_funded(campaign_id, now)


def apply_debit(campaign_id, net_amount):
    Campaign.objects.filter(pk=campaign_id).update(
        amount_raised=F('amount_raised') - net_amount,
        donor_count=F('donor_count') - 1,
        updated=timezone.now(),
    )


def _transition(donation, target, **fields):
    """Move ``donation`` to ``target`` if its stored status allows it.

    Returns False when the donation is already in ``target``.
    """
    now = timezone.now()
    updated = Donation.objects.filter(
        pk=donation.pk, payment_status__in=Donation.sources_for(target)
    ).update(payment_status=target, updated_at=now, **fields)
    if updated:
        donation.payment_status = target
        for name, value in fields.items():
            setattr(donation, name, value)
        return True
    current = Donation.objects.values_list('payment_status', flat=True).get(pk=donation.pk)
    donation.payment_status = current
    if current == target:
        return False
    raise InvalidTransition(f"Cannot move a {current} donation to {target}")


def _settle(donation, **gateway_fields):
    """Complete the donation and credit its campaign. Runs inside the caller's transaction."""
    if not _transition(donation, Donation.STATUS_COMPLETED, completed_at=timezone.now(), **gateway_fields):
        return False, False
    return True, apply_credit(donation.campaign_id, donation.net_amount)


def update_donor_totals(donation, sign=1):
    """Best-effort update of the donor's lifetime totals. Failures are logged, not raised."""
    try:
        with transaction.atomic():
            found = increment_donor_totals(donation.donor_id, sign * donation.amount, sign)
    except DatabaseError:
        logger.exception(
            "Could not update totals of donor %s for donation %s", donation.donor_id, donation.transaction_id
        )
        return False
    if not found:
        logger.error("Donor %s missing while updating totals for donation %s", donation.donor_id, donation.transaction_id)
    return found


def _after_completion(donation, goal_reached):
    update_donor_totals(donation)

    def notify():
        donation_completed.send(sender=Donation, donation=donation, goal_reached=goal_reached)
        if goal_reached:
            campaign_goal_reached.send(sender=Campaign, campaign_id=donation.campaign_id, donation=donation)
    transaction.on_commit(notify)


def validate_donation(campaign_id, amount, payment_method):
    if not campaign_id:
        raise InvalidInput('Student ID is required')
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidInput('Donation amount must be a whole number')
    if amount < settings.DONATION_MIN_AMOUNT:
        raise InvalidInput(f"Minimum donation is {settings.DONATION_MIN_AMOUNT}")
    if payment_method not in dict(Donation.METHOD_CHOICES):
        raise InvalidInput('Invalid payment method')


def create_donation(donor, campaign_id, amount, payment_method, message='', anonymous=False,
                    receive_updates=True, currency='KES', ip_address=None, user_agent=''):
    """Record a donation and, when settling immediately, credit the campaign.

    The donation row and the ledger update share one transaction: either both
    are written or neither is.
    """
    validate_donation(campaign_id, amount, payment_method)
    campaign = Campaign.objects.filter(pk=campaign_id).first()
    if campaign is None:
        raise CampaignNotEligible('Student profile not found', not_found=True)
    if not campaign.is_accepting_donations:
        raise CampaignNotEligible()

    fees = compute_fees(amount, payment_method, settings.DONATION_PLATFORM_FEE_RATE)
    settle_now = settings.DONATION_SETTLE_IMMEDIATELY

    def record():
        donation = Donation.objects.create(
            donor=donor,
            campaign=campaign,
            amount=amount,
            currency=currency,
            payment_method=payment_method,
            payment_status=Donation.STATUS_PENDING,
            message=message or '',
            anonymous=bool(anonymous),
            receive_updates=bool(receive_updates),
            platform_fee=fees.platform_fee,
            payment_processing_fee=fees.payment_processing_fee,
            net_amount=fees.net_amount,
            ip_address=ip_address,
            user_agent=(user_agent or '')[:255],
        )
        goal_reached = False
        if settle_now:
            _, goal_reached = _settle(donation)
        return donation, goal_reached

    donation, goal_reached = run_in_transaction(record, f"Donation to campaign {campaign_id}")
    logger.info(
        "Donation %s created (%s %s via %s, status %s)",
        donation.transaction_id, amount, currency, payment_method, donation.payment_status,
    )
    if donation.payment_status == Donation.STATUS_COMPLETED:
        _after_completion(donation, goal_reached)
    return donation


def complete_donation(donation, **gateway_fields):
    """Gateway confirmed the payment. Completing an already completed donation is a no-op."""
    settled, goal_reached = run_in_transaction(
        lambda: _settle(donation, **gateway_fields), f"Settlement of donation {donation.transaction_id}"
    )
    if settled:
        _after_completion(donation, goal_reached)
    return settled


def mark_processing(donation, **gateway_fields):
    with transaction.atomic():
        return _transition(donation, Donation.STATUS_PROCESSING, **gateway_fields)


def fail_donation(donation, **gateway_fields):
    with transaction.atomic():
        failed = _transition(donation, Donation.STATUS_FAILED, **gateway_fields)
    if failed:
        logger.info("Donation %s failed at the gateway", donation.transaction_id)
    return failed


def refund_donation(donation, user, reason):
    """Donor-initiated refund within the refund window. Reverses the campaign credit."""
    if donation.donor_id != user.pk:
        raise RefundUnauthorized()
    if donation.payment_status == Donation.STATUS_REFUNDED:
        raise AlreadyRefunded()
    if donation.payment_status != Donation.STATUS_COMPLETED:
        raise DonationNotRefundable()
    window = timedelta(days=settings.DONATION_REFUND_WINDOW_DAYS)
    if timezone.now() - donation.created_at > window:
        raise RefundWindowExpired(f"Refund period has expired ({settings.DONATION_REFUND_WINDOW_DAYS} days)")

    def reverse():
        now = timezone.now()
        updated = Donation.objects.filter(
            pk=donation.pk, payment_status__in=Donation.sources_for(Donation.STATUS_REFUNDED)
        ).update(
            payment_status=Donation.STATUS_REFUNDED,
            refund_reason=reason,
            refunded_at=now,
            refunded_by=user,
            updated_at=now,
        )
        if not updated:
            raise AlreadyRefunded()
        apply_debit(donation.campaign_id, donation.net_amount)
        return now

    refunded_at = run_in_transaction(reverse, f"Refund of donation {donation.transaction_id}")
    donation.payment_status = Donation.STATUS_REFUNDED
    donation.refund_reason = reason
    donation.refunded_at = refunded_at
    donation.refunded_by = user
    logger.info("Donation %s refunded by donor %s", donation.transaction_id, user.pk)

    if settings.DONATION_REVERSE_DONOR_TOTALS_ON_REFUND:
        update_donor_totals(donation, sign=-1)
    transaction.on_commit(lambda: donation_refunded.send(sender=Donation, donation=donation))
    return donation
