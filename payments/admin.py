import csv

from django.contrib import admin
from django.http import HttpResponse
from django.utils import timezone

from campaigns.admin import RecentDateFilter
from .models import Donation


class DonationDateFilter(RecentDateFilter):
    def queryset(self, request, queryset):
        value = self.value()
        days = {'1d': 1, '7d': 7, '30d': 30}.get(value)
        if not days:
            return queryset
        return queryset.filter(created_at__gte=timezone.now() - timezone.timedelta(days=days))


@admin.register(Donation)
class DonationAdmin(admin.ModelAdmin):
    list_display = (
        'transaction_id', 'donor', 'campaign', 'amount', 'currency', 'payment_method',
        'platform_fee', 'payment_processing_fee', 'net_amount', 'payment_status', 'created_at',
    )
    list_filter = ('payment_status', 'payment_method', 'currency', 'anonymous', DonationDateFilter)
    search_fields = ('transaction_id', 'mpesa_receipt_number', 'gateway_reference', 'donor__email')
    date_hierarchy = 'created_at'
    ordering = ('-created_at',)
    actions = ['export_csv']

    def get_readonly_fields(self, request, obj=None):
        # Money and status only move through the ledger
        return [f.name for f in self.model._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def export_csv(self, request, queryset):
        """Admin action: export the selected donations as CSV."""
        timestamp = timezone.now().strftime('%Y%m%d_%H%M%S')
        response = HttpResponse(content_type='text/csv; charset=utf-8')
        response['Content-Disposition'] = f'attachment; filename="donations_{timestamp}.csv"'
        writer = csv.writer(response)
        writer.writerow([
            'Transaction', 'Donor', 'Campaign', 'Amount', 'Currency', 'Method',
            'Platform fee', 'Processing fee', 'Net amount', 'Status', 'Created', 'Anonymous'
        ])
        for d in queryset.select_related('donor'):
            writer.writerow([
                d.transaction_id,
                d.donor.email,
                d.campaign_id,
                d.amount,
                d.currency,
                d.get_payment_method_display(),
                d.platform_fee,
                d.payment_processing_fee,
                d.net_amount,
                d.get_payment_status_display(),
                d.created_at.strftime('%Y-%m-%d %H:%M:%S'),
                'yes' if d.anonymous else 'no',
            ])
        return response
    export_csv.short_description = 'Export selected donations to CSV'
