from django import forms
from django.forms.models import model_to_dict

from .models import Campaign, CampaignUpdate


class CampaignForm(forms.ModelForm):
    class Meta:
        model = Campaign
        fields = [
            'institution', 'course', 'year_of_study', 'student_id', 'amount_needed',
            'funding_type', 'story', 'urgent', 'deadline',
        ]

    @classmethod
    def for_update(cls, instance, data):
        """Bind a partial update on top of the current values.

        Once approved, the goal, funding type, institution and course are
        kept as they were whatever the payload says.
        """
        merged = model_to_dict(instance, fields=cls._meta.fields)
        frozen = Campaign.FROZEN_WHEN_APPROVED if instance.status == Campaign.STATUS_APPROVED else ()
        for key in cls._meta.fields:
            if key in data and key not in frozen:
                merged[key] = data.get(key)
        return cls(merged, instance=instance)

    def save_profile(self):
        """Write only the editable columns so ledger counters are never overwritten."""
        campaign = super().save(commit=False)
        campaign.save(update_fields=list(self._meta.fields) + ['updated'])
        return campaign


class RejectForm(forms.Form):
    reason = forms.CharField(max_length=2000)


class CampaignUpdateForm(forms.ModelForm):
    class Meta:
        model = CampaignUpdate
        fields = ['title', 'message']
