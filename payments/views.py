import hashlib
import hmac
import json
import logging

from django.conf import settings
from django.db.models import Avg, Count, Sum
from django.http import HttpResponse, HttpResponseBadRequest, JsonResponse
from django.utils.encoding import force_bytes
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from accounts.decorators import json_login_required, role_required
from accounts.models import User
from accounts.serializers import user_summary
from lift_site.api import form_errors, get_client_ip, parse_body
from . import ledger
from .exceptions import DonationNotFound, InvalidInput, InvalidTransition, RefundUnauthorized
from .forms import DonationForm, RefundForm
from .models import Donation
from .serializers import donation_detail, donation_public, donation_receipt

logger = logging.getLogger(__name__)

CAMPAIGN_DONATIONS_LIMIT = 20


def _donations():
    return Donation.objects.select_related('donor', 'campaign', 'campaign__user')


@require_http_methods(['GET', 'POST'])
@json_login_required
def donations_collection(request):
    if request.method == 'POST':
        return create_donation(request)
    qs = _donations()
    if not request.user.is_platform_admin:
        qs = qs.filter(donor=request.user)
    donations = [donation_detail(d) for d in qs]
    return JsonResponse({'success': True, 'donations': donations, 'count': len(donations)})


def create_donation(request):
    data = parse_body(request)
    if data is None:
        raise InvalidInput('Invalid payload')
    form = DonationForm(data)
    if not form.is_valid():
        raise InvalidInput(errors=form_errors(form))
    cd = form.cleaned_data
    donation = ledger.create_donation(
        donor=request.user,
        campaign_id=cd['campaign'],
        amount=cd['amount'],
        payment_method=cd['payment_method'],
        message=cd['message'],
        anonymous=cd['anonymous'],
        receive_updates=cd['receive_updates'],
        currency=cd['currency'],
        ip_address=get_client_ip(request),
        user_agent=request.headers.get('User-Agent', ''),
    )
    if donation.payment_status == Donation.STATUS_COMPLETED:
        message = 'Donation successful! Thank you for your generosity.'
    else:
        message = 'Donation recorded, awaiting payment confirmation.'
    return JsonResponse({'success': True, 'message': message, 'donation': donation_receipt(donation)}, status=201)


@require_GET
@json_login_required
def donation_resource(request, pk):
    donation = _donations().filter(pk=pk).first()
    if donation is None:
        raise DonationNotFound()
    if donation.donor_id != request.user.pk and not request.user.is_platform_admin:
        return JsonResponse({'success': False, 'message': 'Not authorized to view this donation'}, status=403)
    return JsonResponse({'success': True, 'donation': donation_detail(donation)})


@require_GET
def campaign_donations(request, campaign_id):
    qs = (
        Donation.objects.select_related('donor')
        .filter(campaign_id=campaign_id, payment_status=Donation.STATUS_COMPLETED)
        .order_by('-created_at')[:CAMPAIGN_DONATIONS_LIMIT]
    )
    donations = [donation_public(d) for d in qs]
    return JsonResponse({'success': True, 'donations': donations, 'count': len(donations)})


@require_GET
@json_login_required
def user_donations(request, user_id):
    if user_id != request.user.pk and not request.user.is_platform_admin:
        return JsonResponse({'success': False, 'message': 'Not authorized'}, status=403)
    donations = list(_donations().filter(donor_id=user_id))
    total_donated = sum(d.amount for d in donations if d.payment_status == Donation.STATUS_COMPLETED)
    return JsonResponse({
        'success': True,
        'donations': [donation_detail(d) for d in donations],
        'count': len(donations),
        'total_donated': total_donated,
    })


@require_http_methods(['PUT', 'POST'])
@json_login_required
def refund(request, pk):
    donation = Donation.objects.filter(pk=pk).first()
    if donation is None:
        raise DonationNotFound()
    if donation.donor_id != request.user.pk:
        raise RefundUnauthorized()
    data = parse_body(request)
    if data is None:
        raise InvalidInput('Invalid payload')
    form = RefundForm(data)
    if not form.is_valid():
        raise InvalidInput('Refund reason is required', errors=form_errors(form))
    donation = ledger.refund_donation(donation, request.user, form.cleaned_data['reason'])
    return JsonResponse({
        'success': True,
        'message': 'Refund processed successfully',
        'donation': donation_detail(donation, include_campaign=False),
    })


@require_GET
@role_required('admin')
def stats_summary(request):
    completed = Donation.objects.filter(payment_status=Donation.STATUS_COMPLETED)
    totals = completed.aggregate(count=Count('id'), total=Sum('amount'), net=Sum('net_amount'), average=Avg('amount'))
    top = list(
        completed.values('donor').annotate(total=Sum('amount'), count=Count('id')).order_by('-total')[:10]
    )
    donors = User.objects.in_bulk([row['donor'] for row in top])
    top_donors = [
        {'donor': user_summary(donors.get(row['donor'])), 'total': row['total'], 'count': row['count']}
        for row in top
    ]
    counts = {key: 0 for key, _ in Donation.STATUS_CHOICES}
    for row in Donation.objects.values('payment_status').annotate(n=Count('id')):
        counts[row['payment_status']] = row['n']
    return JsonResponse({
        'success': True,
        'stats': {
            'total_donations': totals['count'],
            'total_amount': totals['total'] or 0,
            'total_net_amount': totals['net'] or 0,
            'average_donation': round(totals['average'] or 0, 2),
            'by_status': counts,
            'top_donors': top_donors,
        },
    })


def verify_signature(payload, signature):
    """HMAC-SHA256 of the raw body bytes, hex encoded, optionally prefixed with 'sha256='."""
    if not signature:
        return False
    if signature.startswith('sha256='):
        signature = signature[len('sha256='):]
    digest = hmac.new(force_bytes(settings.PAYMENT_WEBHOOK_SECRET), force_bytes(payload), hashlib.sha256).hexdigest()
    return hmac.compare_digest(force_bytes(digest), force_bytes(signature.strip()))


def deep_find(obj, keys):
    """Return the first non-null value for any of ``keys`` in nested dicts/lists."""
    if isinstance(obj, dict):
        for k in keys:
            if k in obj and obj[k] is not None:
                return obj[k]
        for v in obj.values():
            res = deep_find(v, keys)
            if res is not None:
                return res
    elif isinstance(obj, list):
        for it in obj:
            res = deep_find(it, keys)
            if res is not None:
                return res
    return None


# Gateway status -> our transition
GATEWAY_STATUS_MAP = {
    'pending': Donation.STATUS_PROCESSING,
    'processing': Donation.STATUS_PROCESSING,
    'approved': Donation.STATUS_COMPLETED,
    'paid': Donation.STATUS_COMPLETED,
    'completed': Donation.STATUS_COMPLETED,
    'success': Donation.STATUS_COMPLETED,
    'failed': Donation.STATUS_FAILED,
    'declined': Donation.STATUS_FAILED,
    'canceled': Donation.STATUS_FAILED,
    'cancelled': Donation.STATUS_FAILED,
}


@csrf_exempt
@require_POST
def webhook(request):
    payload = request.body
    if not settings.PAYMENT_WEBHOOK_DISABLE_VERIFY:
        signature = request.headers.get('X-Payment-Signature', '')
        if not verify_signature(payload, signature):
            logger.warning("Payment webhook rejected: bad signature")
            return HttpResponseBadRequest('Invalid signature')
    try:
        data = json.loads(payload.decode('utf-8') or '{}')
    except (UnicodeDecodeError, ValueError):
        return HttpResponseBadRequest('Invalid payload')

    # Some gateways nest the transaction under data.object or transaction
    tx = data
    if isinstance(data, dict):
        inner = data.get('data')
        if isinstance(inner, dict) and inner.get('object'):
            tx = inner['object']
        elif data.get('transaction'):
            tx = data['transaction']
    reference = deep_find(tx, ['transaction_id', 'reference'])
    status = str(deep_find(tx, ['status']) or '').lower()
    gateway_id = str(deep_find(tx, ['id']) or '')
    receipt = str(deep_find(tx, ['mpesa_receipt_number', 'receipt']) or '')
    logger.info("Payment webhook ref=%s status=%s id=%s", reference, status, gateway_id)

    if not reference:
        return HttpResponseBadRequest('Missing reference')
    donation = Donation.objects.filter(transaction_id=reference).first()
    if donation is None:
        return HttpResponseBadRequest('Unknown donation')

    target = GATEWAY_STATUS_MAP.get(status)
    if target is None:
        return HttpResponse('ignored')
    fields = {'gateway_reference': gateway_id[:64]}
    if receipt:
        fields['mpesa_receipt_number'] = receipt[:64]
    try:
        if target == Donation.STATUS_COMPLETED:
            ledger.complete_donation(donation, **fields)
        elif target == Donation.STATUS_PROCESSING:
            ledger.mark_processing(donation, **fields)
        else:
            ledger.fail_donation(donation, **fields)
    except InvalidTransition as exc:
        # Late or out-of-order notification; retrying will not change the outcome
        logger.warning("Payment webhook for %s ignored: %s", reference, exc.message)
        return HttpResponse('ignored')
    return HttpResponse('ok')
