from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from .models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    list_display = ('email', 'first_name', 'last_name', 'role', 'verified', 'total_donations', 'donation_count', 'is_active')
    list_filter = ('role', 'verified', 'is_active', 'is_staff')
    search_fields = ('email', 'first_name', 'last_name', 'phone')
    ordering = ('-date_joined',)
    readonly_fields = ('total_donations', 'donation_count')
    fieldsets = BaseUserAdmin.fieldsets + (
        ('Platform', {
            'fields': ('role', 'phone', 'verified', 'total_donations', 'donation_count'),
            'description': "Donation totals are maintained by the donation ledger and cannot be edited here.",
        }),
    )
