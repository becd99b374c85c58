from accounts.serializers import user_summary


def campaign_summary(campaign):
    return {
        'id': campaign.pk,
        'student': user_summary(campaign.user),
        'institution': campaign.institution,
        'course': campaign.course,
        'year_of_study': campaign.year_of_study,
        'funding_type': campaign.funding_type,
        'amount_needed': campaign.amount_needed,
        'amount_raised': campaign.amount_raised,
        'donor_count': campaign.donor_count,
        'progress_percentage': campaign.progress_percentage,
        'remaining_amount': campaign.remaining_amount,
        'days_left': campaign.days_left,
        'status': campaign.status,
        'urgent': campaign.urgent,
        'deadline': campaign.deadline,
        'created': campaign.created,
    }


def campaign_detail(campaign, include_private=False):
    data = campaign_summary(campaign)
    data.update({
        'story': campaign.story,
        'student_id': campaign.student_id,
        'views': campaign.views,
        'shares': campaign.shares,
        'completed_at': campaign.completed_at,
        'verified_at': campaign.verified_at,
        'verified_by': user_summary(campaign.verified_by),
        'is_active': campaign.is_active,
        'updates': [
            {'title': u.title, 'message': u.message, 'created': u.created}
            for u in campaign.updates.all()
        ],
    })
    if include_private:
        data['admin_notes'] = campaign.admin_notes
    return data
