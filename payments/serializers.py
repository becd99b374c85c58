from accounts.serializers import user_summary
from campaigns.serializers import campaign_summary


def donation_public(donation):
    """Shape shown on a campaign page; anonymous donors stay hidden."""
    return {
        'id': donation.pk,
        'donor': None if donation.anonymous else user_summary(donation.donor),
        'amount': donation.amount,
        'currency': donation.currency,
        'message': donation.message,
        'anonymous': donation.anonymous,
        'created_at': donation.created_at,
    }


def donation_detail(donation, include_campaign=True):
    data = {
        'id': donation.pk,
        'transaction_id': donation.transaction_id,
        'donor': user_summary(donation.donor),
        'campaign_id': donation.campaign_id,
        'amount': donation.amount,
        'currency': donation.currency,
        'payment_method': donation.payment_method,
        'payment_status': donation.payment_status,
        'platform_fee': donation.platform_fee,
        'payment_processing_fee': donation.payment_processing_fee,
        'net_amount': donation.net_amount,
        'message': donation.message,
        'anonymous': donation.anonymous,
        'receive_updates': donation.receive_updates,
        'created_at': donation.created_at,
        'completed_at': donation.completed_at,
        'refunded_at': donation.refunded_at,
        'refund_reason': donation.refund_reason,
    }
    if include_campaign:
        data['campaign'] = campaign_summary(donation.campaign)
    return data


def donation_receipt(donation):
    """Response to the donation intake call."""
    return {
        'donation_id': donation.pk,
        'transaction_id': donation.transaction_id,
        'amount': donation.amount,
        'platform_fee': donation.platform_fee,
        'payment_processing_fee': donation.payment_processing_fee,
        'net_amount': donation.net_amount,
        'payment_status': donation.payment_status,
    }
