from django.db.models import Count, Sum
from django.http import JsonResponse
from django.views.decorators.http import require_GET

from accounts.decorators import role_required
from .models import Campaign
from .serializers import campaign_summary


@require_GET
@role_required('admin')
def dashboard(request):
    by_status = {key: 0 for key, _ in Campaign.STATUS_CHOICES}
    for row in Campaign.objects.values('status').annotate(n=Count('id')):
        by_status[row['status']] = row['n']
    totals = Campaign.objects.aggregate(raised=Sum('amount_raised'), needed=Sum('amount_needed'), donors=Sum('donor_count'))
    pending = Campaign.objects.filter(status=Campaign.STATUS_PENDING, is_active=True).select_related('user').order_by('created')[:10]
    return JsonResponse({
        'success': True,
        'campaigns_by_status': by_status,
        'total_raised': totals['raised'] or 0,
        'total_needed': totals['needed'] or 0,
        'total_donors': totals['donors'] or 0,
        'pending_applications': [campaign_summary(c) for c in pending],
    })
