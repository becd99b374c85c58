import logging

from django.core.paginator import EmptyPage, PageNotAnInteger, Paginator
from django.db.models import Q
from django.http import JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_GET, require_http_methods

from accounts.decorators import json_login_required, role_required
from lift_site.api import form_errors, json_error, parse_body
from .forms import CampaignForm, CampaignUpdateForm, RejectForm
from .models import Campaign
from .serializers import campaign_detail, campaign_summary

logger = logging.getLogger(__name__)

SORT_FIELDS = {
    '-created', 'created',
    '-amount_raised', 'amount_raised',
    '-amount_needed', 'amount_needed',
    '-donor_count', '-urgent', 'deadline',
}
DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 50


def public_campaigns():
    return Campaign.objects.filter(status=Campaign.STATUS_APPROVED, is_active=True).select_related('user')


def _can_manage(user, campaign):
    return user.is_authenticated and (campaign.user_id == user.pk or user.is_platform_admin)


def _positive_int(value, default):
    try:
        value = int(value)
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


@require_http_methods(['GET', 'POST'])
def campaigns_collection(request):
    if request.method == 'POST':
        return create_campaign(request)
    return list_campaigns(request)


def list_campaigns(request):
    qs = public_campaigns()
    if request.GET.get('urgent') == 'true':
        qs = qs.filter(urgent=True)
    funding_type = request.GET.get('funding_type')
    if funding_type:
        qs = qs.filter(funding_type=funding_type)
    sort = request.GET.get('sort', '-created')
    if sort not in SORT_FIELDS:
        sort = '-created'
    qs = qs.order_by(sort, '-id')

    limit = min(_positive_int(request.GET.get('limit'), DEFAULT_PAGE_SIZE), MAX_PAGE_SIZE)
    paginator = Paginator(qs, limit)
    try:
        page = paginator.page(request.GET.get('page', 1))
    except PageNotAnInteger:
        page = paginator.page(1)
    except EmptyPage:
        page = paginator.page(paginator.num_pages)
    return JsonResponse({
        'success': True,
        'campaigns': [campaign_summary(c) for c in page.object_list],
        'total_pages': paginator.num_pages,
        'current_page': page.number,
        'total': paginator.count,
    })


@role_required('student', 'admin')
def create_campaign(request):
    data = parse_body(request)
    if data is None:
        return json_error('Invalid payload')
    if Campaign.objects.filter(user=request.user).exists():
        return json_error('You already have a student profile', code='duplicate_campaign')
    form = CampaignForm(data)
    if not form.is_valid():
        return json_error('Invalid campaign data', errors=form_errors(form))
    campaign = form.save(commit=False)
    campaign.user = request.user
    campaign.save()
    logger.info("Campaign %s submitted by user %s", campaign.pk, request.user.pk)
    return JsonResponse({
        'success': True,
        'message': 'Student profile created successfully. Your application is pending review.',
        'campaign': campaign_detail(campaign, include_private=True),
    }, status=201)


@require_http_methods(['GET', 'PUT', 'PATCH', 'DELETE'])
def campaign_resource(request, pk):
    campaign = get_object_or_404(Campaign.objects.select_related('user', 'verified_by'), pk=pk)
    if request.method == 'GET':
        return JsonResponse({
            'success': True,
            'campaign': campaign_detail(campaign, include_private=_can_manage(request.user, campaign)),
        })
    if not request.user.is_authenticated:
        return json_error('Authentication required', status=401, code='not_authenticated')
    if not _can_manage(request.user, campaign):
        return json_error('Not authorized to modify this profile', status=403, code='forbidden')
    if request.method == 'DELETE':
        campaign.cancel()
        logger.info("Campaign %s cancelled by user %s", campaign.pk, request.user.pk)
        return JsonResponse({'success': True, 'message': 'Student profile removed'})

    data = parse_body(request)
    if data is None:
        return json_error('Invalid payload')
    form = CampaignForm.for_update(campaign, data)
    if not form.is_valid():
        return json_error('Invalid campaign data', errors=form_errors(form))
    campaign = form.save_profile()
    return JsonResponse({
        'success': True,
        'message': 'Student profile updated successfully',
        'campaign': campaign_detail(campaign, include_private=True),
    })


@require_GET
@json_login_required
def campaign_for_user(request, user_id):
    campaign = Campaign.objects.select_related('user', 'verified_by').filter(user_id=user_id).first()
    if campaign is None:
        return json_error('Student profile not found', status=404, code='not_found')
    return JsonResponse({
        'success': True,
        'campaign': campaign_detail(campaign, include_private=_can_manage(request.user, campaign)),
    })


@require_http_methods(['POST'])
@json_login_required
def add_update(request, pk):
    campaign = get_object_or_404(Campaign, pk=pk)
    if campaign.user_id != request.user.pk:
        return json_error('Not authorized to add updates to this profile', status=403, code='forbidden')
    data = parse_body(request)
    if data is None:
        return json_error('Invalid payload')
    form = CampaignUpdateForm(data)
    if not form.is_valid():
        return json_error('Update title and message are required', errors=form_errors(form))
    update = form.save(commit=False)
    update.campaign = campaign
    update.save()
    return JsonResponse({
        'success': True,
        'message': 'Update added successfully',
        'update': {'title': update.title, 'message': update.message, 'created': update.created},
    }, status=201)


@require_http_methods(['PUT', 'POST'])
@role_required('admin')
def approve_campaign(request, pk):
    campaign = get_object_or_404(Campaign, pk=pk)
    if not campaign.approve(request.user):
        return json_error(f"Cannot approve a {campaign.status} application", status=409, code='invalid_status')
    logger.info("Campaign %s approved by %s", campaign.pk, request.user.pk)
    return JsonResponse({'success': True, 'message': 'Student application approved', 'campaign': campaign_detail(campaign, include_private=True)})


@require_http_methods(['PUT', 'POST'])
@role_required('admin')
def reject_campaign(request, pk):
    campaign = get_object_or_404(Campaign, pk=pk)
    data = parse_body(request)
    if data is None:
        return json_error('Invalid payload')
    form = RejectForm(data)
    if not form.is_valid():
        return json_error('Rejection reason is required', errors=form_errors(form))
    if not campaign.reject(form.cleaned_data['reason']):
        return json_error(f"Cannot reject a {campaign.status} application", status=409, code='invalid_status')
    logger.info("Campaign %s rejected by %s", campaign.pk, request.user.pk)
    return JsonResponse({'success': True, 'message': 'Student application rejected', 'campaign': campaign_detail(campaign, include_private=True)})


@require_GET
def search(request):
    query = request.GET.get('q', '').strip()
    campaigns = []
    if query:
        qs = public_campaigns().filter(
            Q(course__icontains=query) | Q(institution__icontains=query) | Q(story__icontains=query)
        )
        campaigns = [campaign_summary(c) for c in qs]
    return JsonResponse({'success': True, 'query': query, 'campaigns': campaigns, 'count': len(campaigns)})


@require_GET
def filter_by_category(request, category):
    qs = public_campaigns()
    if category == 'urgent':
        qs = qs.filter(urgent=True)
    else:
        qs = qs.filter(funding_type=category)
    campaigns = [campaign_summary(c) for c in qs.order_by('-created')]
    return JsonResponse({'success': True, 'campaigns': campaigns, 'count': len(campaigns)})


@require_http_methods(['PUT', 'POST'])
def increment_views(request, pk):
    campaign = get_object_or_404(Campaign, pk=pk)
    campaign.increment_counter('views')
    return JsonResponse({'success': True})


@require_http_methods(['PUT', 'POST'])
def increment_shares(request, pk):
    campaign = get_object_or_404(Campaign, pk=pk)
    campaign.increment_counter('shares')
    return JsonResponse({'success': True})
