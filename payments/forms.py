from django import forms
from django.conf import settings

from .models import Donation


class DonationForm(forms.Form):
    campaign = forms.IntegerField(min_value=1, error_messages={'required': 'Student ID is required'})
    amount = forms.IntegerField(error_messages={'required': 'Donation amount is required'})
    payment_method = forms.ChoiceField(
        choices=Donation.METHOD_CHOICES,
        error_messages={'invalid_choice': 'Invalid payment method', 'required': 'Payment method is required'},
    )
    currency = forms.ChoiceField(choices=Donation.CURRENCY_CHOICES, required=False)
    message = forms.CharField(max_length=500, required=False)
    anonymous = forms.BooleanField(required=False)
    receive_updates = forms.NullBooleanField(required=False)

    def clean_amount(self):
        amount = self.cleaned_data['amount']
        if amount < settings.DONATION_MIN_AMOUNT:
            raise forms.ValidationError(f"Minimum donation is {settings.DONATION_MIN_AMOUNT}")
        return amount

    def clean_currency(self):
        return self.cleaned_data.get('currency') or 'KES'

    def clean_receive_updates(self):
        # Opt-out only: a missing value means the donor wants updates
        return self.cleaned_data.get('receive_updates') is not False


class RefundForm(forms.Form):
    reason = forms.CharField(max_length=1000, error_messages={'required': 'Refund reason is required'})
