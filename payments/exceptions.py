class DonationError(Exception):
    """Base class for donation failures that are reported to the caller."""
    status_code = 400
    code = 'donation_error'
    default_message = 'Error processing donation'

    def __init__(self, message=None, errors=None):
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)

    def as_dict(self):
        payload = {'success': False, 'code': self.code, 'message': self.message}
        if self.errors:
            payload['errors'] = self.errors
        return payload


class InvalidInput(DonationError):
    code = 'invalid_input'
    default_message = 'Invalid donation data'


class CampaignNotEligible(DonationError):
    code = 'campaign_not_eligible'
    default_message = 'Invalid student profile'

    def __init__(self, message=None, errors=None, not_found=False):
        super().__init__(message, errors)
        if not_found:
            self.status_code = 404


class DonationNotFound(DonationError):
    status_code = 404
    code = 'not_found'
    default_message = 'Donation not found'


class ConcurrencyConflict(DonationError):
    """The ledger could not be written within the retry budget. Safe to retry."""
    status_code = 503
    code = 'concurrency_conflict'
    default_message = 'The campaign is busy, please retry'


class InvalidTransition(DonationError):
    status_code = 409
    code = 'invalid_transition'
    default_message = 'Payment status change not allowed'


class RefundUnauthorized(DonationError):
    status_code = 403
    code = 'refund_unauthorized'
    default_message = 'Not authorized'


class DonationNotRefundable(DonationError):
    code = 'not_refundable'
    default_message = 'Only completed donations can be refunded'


class AlreadyRefunded(DonationError):
    status_code = 409
    code = 'already_refunded'
    default_message = 'Donation has already been refunded'


class RefundWindowExpired(DonationError):
    code = 'refund_window_expired'
    default_message = 'Refund period has expired'
