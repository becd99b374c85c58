"""
Donation lifecycle hooks.

Receivers (notifications, receipts, live feeds) subscribe to these signals.
They are sent once the ledger transaction has committed.
"""
import logging

from django.dispatch import Signal, receiver

logger = logging.getLogger(__name__)

# sender=Donation, donation=<Donation>, goal_reached=<bool>
donation_completed = Signal()
# sender=Donation, donation=<Donation>
donation_refunded = Signal()
# sender=Campaign, campaign_id=<int>, donation=<Donation>
campaign_goal_reached = Signal()


@receiver(donation_completed)
def log_donation_completed(sender, donation, goal_reached=False, **kwargs):
    logger.info(
        "Donation %s completed: %s %s to campaign %s (net %s)",
        donation.transaction_id, donation.amount, donation.currency, donation.campaign_id, donation.net_amount,
    )


@receiver(donation_refunded)
def log_donation_refunded(sender, donation, **kwargs):
    logger.info("Donation %s refunded (campaign %s, net %s)", donation.transaction_id, donation.campaign_id, donation.net_amount)


@receiver(campaign_goal_reached)
def log_goal_reached(sender, campaign_id, **kwargs):
    logger.info("Campaign %s reached its funding goal", campaign_id)
