"""
Fee split applied to a donation when it is created.

All amounts are integers in the smallest currency unit. Each fee component
is rounded half-up to a whole unit on its own:

    platform_fee           = round(amount * 5%)
    payment_processing_fee = mpesa: round(amount * 1%)
                             card:  round(amount * 2.9%) + 30
                             bank, paypal: 0
    net_amount             = amount - platform_fee - payment_processing_fee

A donation stores the result at creation; later rate changes never touch
existing records.
"""
from collections import namedtuple
from decimal import ROUND_HALF_UP, Decimal

PLATFORM_FEE_RATE = Decimal('0.05')

# method -> (percentage rate, fixed fee in minor units)
PROCESSING_FEES = {
    'mpesa': (Decimal('0.01'), 0),
    'card': (Decimal('0.029'), 30),
    'bank': (Decimal('0'), 0),
    'paypal': (Decimal('0'), 0),
}

FeeBreakdown = namedtuple('FeeBreakdown', ['platform_fee', 'payment_processing_fee', 'net_amount'])


def round_minor(value):
    """Round a Decimal half-up to a whole minor unit."""
    return int(Decimal(value).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def compute_fees(amount, payment_method, platform_rate=PLATFORM_FEE_RATE):
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise TypeError(f"amount must be an integer number of minor units, got {amount!r}")
    if amount <= 0:
        raise ValueError(f"amount must be positive, got {amount}")
    try:
        rate, fixed = PROCESSING_FEES[payment_method]
    except KeyError:
        raise ValueError(f"No fee policy for payment method {payment_method!r}") from None

    platform_fee = round_minor(amount * Decimal(str(platform_rate)))
    processing_fee = round_minor(amount * rate) + fixed if rate or fixed else 0
    net_amount = amount - platform_fee - processing_fee
    if net_amount < 0:
        raise ValueError(f"Fees exceed the donation amount ({amount} via {payment_method})")
    return FeeBreakdown(platform_fee, processing_fee, net_amount)
