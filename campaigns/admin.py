import csv

from django.contrib import admin
from django.http import HttpResponse
from django.utils import timezone

from .models import Campaign, CampaignUpdate


class RecentDateFilter(admin.SimpleListFilter):
    title = 'Period'
    parameter_name = 'period'

    def lookups(self, request, model_admin):
        return [
            ('1d', 'Last 24h'),
            ('7d', 'Last 7 days'),
            ('30d', 'Last 30 days'),
        ]

    def queryset(self, request, queryset):
        value = self.value()
        if not value:
            return queryset
        now = timezone.now()
        if value == '1d':
            return queryset.filter(created__gte=now - timezone.timedelta(days=1))
        if value == '7d':
            return queryset.filter(created__gte=now - timezone.timedelta(days=7))
        if value == '30d':
            return queryset.filter(created__gte=now - timezone.timedelta(days=30))
        return queryset


class CampaignUpdateInline(admin.TabularInline):
    model = CampaignUpdate
    extra = 0
    fields = ('title', 'message', 'created')
    readonly_fields = ('created',)


@admin.register(Campaign)
class CampaignAdmin(admin.ModelAdmin):
    list_display = ('user', 'institution', 'course', 'funding_type', 'status', 'amount_needed', 'amount_raised', 'donor_count', 'urgent', 'created')
    list_filter = ('status', 'funding_type', 'urgent', 'is_active', RecentDateFilter)
    search_fields = ('institution', 'course', 'story', 'user__email', 'user__last_name')
    date_hierarchy = 'created'
    ordering = ('-created',)
    fieldsets = (
        (None, {'fields': ('user', 'status', 'is_active', 'urgent', 'deadline')}),
        ('Application', {'fields': ('institution', 'course', 'year_of_study', 'student_id', 'funding_type', 'amount_needed', 'story')}),
        ('Moderation', {'fields': ('admin_notes', 'verified_by', 'verified_at')}),
        ('Funding', {
            'fields': ('amount_raised', 'donor_count', 'completed_at', 'views', 'shares'),
            'description': "Funding totals are maintained by the donation ledger.",
        }),
        ('Meta', {'fields': ('created', 'updated')}),
    )
    # Status moves through the approve/reject actions so verification is stamped
    readonly_fields = Campaign.LEDGER_FIELDS + ('status', 'views', 'shares', 'verified_by', 'verified_at', 'created', 'updated')
    inlines = [CampaignUpdateInline]
    actions = ['approve_selected', 'reject_selected', 'export_csv']

    def save_model(self, request, obj, form, change):
        if not change:
            super().save_model(request, obj, form, change)
            return
        # A donation may have landed since the form was loaded
        fields = [f for f in form.changed_data if f not in self.readonly_fields]
        if fields:
            obj.save(update_fields=fields + ['updated'])

    def approve_selected(self, request, queryset):
        approved = sum(1 for campaign in queryset if campaign.approve(request.user))
        self.message_user(request, f"{approved} application(s) approved.")
    approve_selected.short_description = "Approve selected applications"

    def reject_selected(self, request, queryset):
        rejected = sum(1 for campaign in queryset if campaign.reject('Rejected from the admin site'))
        self.message_user(request, f"{rejected} application(s) rejected.")
    reject_selected.short_description = "Reject selected applications"

    def export_csv(self, request, queryset):
        """Admin action: export the selected campaigns as CSV."""
        timestamp = timezone.now().strftime('%Y%m%d_%H%M%S')
        response = HttpResponse(content_type='text/csv; charset=utf-8')
        response['Content-Disposition'] = f'attachment; filename="campaigns_{timestamp}.csv"'
        writer = csv.writer(response)
        writer.writerow([
            'ID', 'Student', 'Email', 'Institution', 'Course', 'Funding type', 'Status',
            'Amount needed', 'Amount raised', 'Donors', 'Created', 'Completed'
        ])
        for campaign in queryset.select_related('user'):
            writer.writerow([
                campaign.id,
                campaign.user.full_name,
                campaign.user.email,
                campaign.institution,
                campaign.course,
                campaign.get_funding_type_display(),
                campaign.get_status_display(),
                campaign.amount_needed,
                campaign.amount_raised,
                campaign.donor_count,
                campaign.created.strftime('%Y-%m-%d %H:%M:%S'),
                campaign.completed_at.strftime('%Y-%m-%d %H:%M:%S') if campaign.completed_at else '',
            ])
        return response
    export_csv.short_description = 'Export selected campaigns to CSV'
