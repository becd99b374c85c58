import json
from datetime import timedelta

from django.test import TestCase, override_settings
from django.urls import reverse
from django.utils import timezone

from accounts.models import User
from campaigns.forms import CampaignForm
from campaigns.models import Campaign
from payments import ledger

STORY = "My parents are small scale farmers and I need help to pay tuition for my final year of studies. " * 2


def make_user(email, role=User.ROLE_STUDENT, **extra):
    return User.objects.create_user(username=email, email=email, password='s3cret-pass', role=role, **extra)


def make_campaign(user, status=Campaign.STATUS_APPROVED, **extra):
    data = {
        'institution': 'Kenyatta University',
        'course': 'Medicine',
        'year_of_study': 3,
        'amount_needed': 50000,
        'funding_type': 'tuition',
        'story': STORY,
        'status': status,
    }
    data.update(extra)
    return Campaign.objects.create(user=user, **data)


class CampaignModelTests(TestCase):
    def setUp(self):
        self.student = make_user('student@example.com')

    def test_progress_and_remaining(self):
        campaign = make_campaign(self.student, amount_needed=2000, amount_raised=500)
        self.assertEqual(campaign.progress_percentage, 25)
        self.assertEqual(campaign.remaining_amount, 1500)
        campaign.amount_raised = 2600
        self.assertEqual(campaign.progress_percentage, 100)
        self.assertEqual(campaign.remaining_amount, 0)

    def test_days_left(self):
        campaign = make_campaign(self.student)
        self.assertIsNone(campaign.days_left)
        campaign.deadline = timezone.now() + timedelta(days=2, hours=3)
        self.assertEqual(campaign.days_left, 3)
        campaign.deadline = timezone.now() - timedelta(days=1)
        self.assertEqual(campaign.days_left, 0)

    def test_approve_only_from_pending_or_rejected(self):
        admin = make_user('admin@example.com', role=User.ROLE_ADMIN)
        campaign = make_campaign(self.student, status=Campaign.STATUS_PENDING)
        self.assertTrue(campaign.approve(admin))
        campaign.refresh_from_db()
        self.assertEqual(campaign.status, Campaign.STATUS_APPROVED)
        self.assertEqual(campaign.verified_by, admin)
        self.assertIsNotNone(campaign.verified_at)

        Campaign.objects.filter(pk=campaign.pk).update(status=Campaign.STATUS_COMPLETED)
        self.assertFalse(campaign.approve(admin))
        self.assertEqual(Campaign.objects.get(pk=campaign.pk).status, Campaign.STATUS_COMPLETED)

    @override_settings(DONATION_SETTLE_IMMEDIATELY=False)
    def test_reapproval_completes_campaign_funded_under_review(self):
        admin = make_user('admin@example.com', role=User.ROLE_ADMIN)
        donor = make_user('donor@example.com', role=User.ROLE_DONOR)
        campaign = make_campaign(self.student, amount_needed=1000)
        donation = ledger.create_donation(donor, campaign.pk, 2000, 'bank')
        self.assertTrue(campaign.reject('Fee statement unreadable'))
        # Gateway confirms the payment while the application is rejected
        ledger.complete_donation(donation)
        campaign.refresh_from_db()
        self.assertEqual((campaign.status, campaign.amount_raised), (Campaign.STATUS_REJECTED, 1900))

        self.assertTrue(campaign.approve(admin))
        self.assertEqual(campaign.status, Campaign.STATUS_COMPLETED)
        campaign.refresh_from_db()
        self.assertEqual(campaign.status, Campaign.STATUS_COMPLETED)
        self.assertIsNotNone(campaign.completed_at)
        self.assertEqual(campaign.verified_by, admin)

    def test_approval_below_goal_stays_approved(self):
        admin = make_user('admin@example.com', role=User.ROLE_ADMIN)
        campaign = make_campaign(self.student, status=Campaign.STATUS_PENDING, amount_needed=1000, amount_raised=999)
        self.assertTrue(campaign.approve(admin))
        campaign.refresh_from_db()
        self.assertEqual(campaign.status, Campaign.STATUS_APPROVED)
        self.assertIsNone(campaign.completed_at)

    def test_counters_increment_in_place(self):
        campaign = make_campaign(self.student)
        stale = Campaign.objects.get(pk=campaign.pk)
        campaign.increment_counter('views')
        stale.increment_counter('views')
        campaign.increment_counter('shares')
        campaign.refresh_from_db()
        self.assertEqual((campaign.views, campaign.shares), (2, 1))
        with self.assertRaises(ValueError):
            campaign.increment_counter('amount_raised')


class CampaignApiTests(TestCase):
    def setUp(self):
        self.student = make_user('student@example.com')
        self.admin = make_user('admin@example.com', role=User.ROLE_ADMIN)
        self.donor = make_user('donor@example.com', role=User.ROLE_DONOR)

    def send(self, method, url, data=None):
        return getattr(self.client, method)(url, data=json.dumps(data or {}), content_type='application/json')

    def campaign_payload(self, **extra):
        payload = {
            'institution': 'Moi University',
            'course': 'Civil Engineering',
            'year_of_study': 2,
            'amount_needed': 80000,
            'funding_type': 'tuition',
            'story': STORY,
        }
        payload.update(extra)
        return payload

    def test_list_shows_only_approved_active(self):
        visible = make_campaign(self.student)
        make_campaign(make_user('s2@example.com'), status=Campaign.STATUS_PENDING)
        make_campaign(make_user('s3@example.com'), is_active=False)
        resp = self.client.get(reverse('campaigns:collection'))
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body['total'], 1)
        self.assertEqual(body['campaigns'][0]['id'], visible.pk)

    def test_list_filters_and_paginates(self):
        for i in range(12):
            make_campaign(make_user(f"s{i}@example.com"), urgent=(i % 3 == 0), funding_type='books' if i < 4 else 'tuition')
        body = self.client.get(reverse('campaigns:collection'), {'limit': 5, 'page': 3}).json()
        self.assertEqual(body['total_pages'], 3)
        self.assertEqual(len(body['campaigns']), 2)
        body = self.client.get(reverse('campaigns:collection'), {'urgent': 'true'}).json()
        self.assertEqual(body['total'], 4)
        body = self.client.get(reverse('campaigns:collection'), {'funding_type': 'books', 'sort': 'bogus'}).json()
        self.assertEqual(body['total'], 4)

    def test_student_creates_pending_campaign(self):
        self.client.force_login(self.student)
        resp = self.send('post', reverse('campaigns:collection'), self.campaign_payload())
        self.assertEqual(resp.status_code, 201)
        campaign = Campaign.objects.get(user=self.student)
        self.assertEqual(campaign.status, Campaign.STATUS_PENDING)
        self.assertEqual(campaign.amount_raised, 0)

        resp = self.send('post', reverse('campaigns:collection'), self.campaign_payload())
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()['code'], 'duplicate_campaign')

    def test_create_validates_and_restricts_role(self):
        self.client.force_login(self.student)
        resp = self.send('post', reverse('campaigns:collection'), self.campaign_payload(amount_needed=500, story='too short'))
        self.assertEqual(resp.status_code, 400)
        self.assertIn('amount_needed', resp.json()['errors'])
        self.assertIn('story', resp.json()['errors'])

        self.client.force_login(self.donor)
        resp = self.send('post', reverse('campaigns:collection'), self.campaign_payload())
        self.assertEqual(resp.status_code, 403)

    def test_update_freezes_fields_once_approved(self):
        campaign = make_campaign(self.student)
        self.client.force_login(self.student)
        resp = self.send('put', reverse('campaigns:detail', args=[campaign.pk]), {
            'amount_needed': 999999, 'course': 'Law', 'urgent': True,
        })
        self.assertEqual(resp.status_code, 200)
        campaign.refresh_from_db()
        self.assertEqual(campaign.amount_needed, 50000)
        self.assertEqual(campaign.course, 'Medicine')
        self.assertTrue(campaign.urgent)

    def test_update_does_not_clobber_ledger_totals(self):
        campaign = make_campaign(self.student)
        form = CampaignForm.for_update(campaign, {'student_id': 'KU/123'})
        self.assertTrue(form.is_valid(), form.errors)
        # Donation lands after the profile was loaded but before it is saved
        ledger.apply_credit(campaign.pk, 4750)
        form.save_profile()
        campaign.refresh_from_db()
        self.assertEqual(campaign.amount_raised, 4750)
        self.assertEqual(campaign.donor_count, 1)
        self.assertEqual(campaign.student_id, 'KU/123')

    def test_only_owner_or_admin_can_modify(self):
        campaign = make_campaign(self.student)
        self.client.force_login(self.donor)
        resp = self.send('put', reverse('campaigns:detail', args=[campaign.pk]), {'urgent': True})
        self.assertEqual(resp.status_code, 403)
        resp = self.send('delete', reverse('campaigns:detail', args=[campaign.pk]))
        self.assertEqual(resp.status_code, 403)

        self.client.force_login(self.admin)
        resp = self.send('delete', reverse('campaigns:detail', args=[campaign.pk]))
        self.assertEqual(resp.status_code, 200)
        campaign.refresh_from_db()
        self.assertFalse(campaign.is_active)
        self.assertEqual(campaign.status, Campaign.STATUS_CANCELLED)

    def test_detail_hides_admin_notes_from_public(self):
        campaign = make_campaign(self.student, admin_notes='Fee statement checked')
        body = self.client.get(reverse('campaigns:detail', args=[campaign.pk])).json()['campaign']
        self.assertNotIn('admin_notes', body)
        self.client.force_login(self.student)
        body = self.client.get(reverse('campaigns:detail', args=[campaign.pk])).json()['campaign']
        self.assertEqual(body['admin_notes'], 'Fee statement checked')

    def test_moderation(self):
        campaign = make_campaign(self.student, status=Campaign.STATUS_PENDING)
        self.client.force_login(self.student)
        resp = self.send('put', reverse('campaigns:approve', args=[campaign.pk]))
        self.assertEqual(resp.status_code, 403)

        self.client.force_login(self.admin)
        resp = self.send('put', reverse('campaigns:reject', args=[campaign.pk]), {})
        self.assertEqual(resp.status_code, 400)
        resp = self.send('put', reverse('campaigns:reject', args=[campaign.pk]), {'reason': 'Missing admission letter'})
        self.assertEqual(resp.status_code, 200)
        campaign.refresh_from_db()
        self.assertEqual(campaign.status, Campaign.STATUS_REJECTED)
        self.assertEqual(campaign.admin_notes, 'Missing admission letter')

        resp = self.send('put', reverse('campaigns:approve', args=[campaign.pk]))
        self.assertEqual(resp.status_code, 200)
        campaign.refresh_from_db()
        self.assertEqual(campaign.status, Campaign.STATUS_APPROVED)
        self.assertEqual(campaign.verified_by, self.admin)

    def test_progress_updates_by_owner_only(self):
        campaign = make_campaign(self.student)
        url = reverse('campaigns:add_update', args=[campaign.pk])
        self.client.force_login(self.donor)
        self.assertEqual(self.send('post', url, {'title': 'Hi', 'message': 'x'}).status_code, 403)
        self.client.force_login(self.student)
        self.assertEqual(self.send('post', url, {'title': 'Exams passed', 'message': 'Thank you all!'}).status_code, 201)
        body = self.client.get(reverse('campaigns:detail', args=[campaign.pk])).json()['campaign']
        self.assertEqual(body['updates'][0]['title'], 'Exams passed')

    def test_search_and_category_filter(self):
        make_campaign(self.student, course='Aeronautical Engineering', urgent=True)
        make_campaign(make_user('s2@example.com'), course='Nursing', funding_type='medical')
        make_campaign(make_user('s3@example.com'), course='Aeronautics', status=Campaign.STATUS_PENDING)
        body = self.client.get(reverse('campaigns:search'), {'q': 'aeronaut'}).json()
        self.assertEqual(body['count'], 1)
        self.assertEqual(self.client.get(reverse('campaigns:search')).json()['count'], 0)
        self.assertEqual(self.client.get(reverse('campaigns:filter', args=['urgent'])).json()['count'], 1)
        self.assertEqual(self.client.get(reverse('campaigns:filter', args=['medical'])).json()['count'], 1)

    def test_view_and_share_counters(self):
        campaign = make_campaign(self.student)
        self.client.put(reverse('campaigns:view', args=[campaign.pk]))
        self.client.put(reverse('campaigns:view', args=[campaign.pk]))
        self.client.post(reverse('campaigns:share', args=[campaign.pk]))
        campaign.refresh_from_db()
        self.assertEqual((campaign.views, campaign.shares), (2, 1))

    def test_campaign_for_user(self):
        campaign = make_campaign(self.student)
        self.client.force_login(self.donor)
        resp = self.client.get(reverse('campaigns:for_user', args=[self.student.pk]))
        self.assertEqual(resp.json()['campaign']['id'], campaign.pk)
        resp = self.client.get(reverse('campaigns:for_user', args=[self.donor.pk]))
        self.assertEqual(resp.status_code, 404)

    def test_dashboard(self):
        make_campaign(self.student, status=Campaign.STATUS_PENDING)
        make_campaign(make_user('s2@example.com'), amount_raised=1200)
        self.client.force_login(self.donor)
        self.assertEqual(self.client.get(reverse('campaigns:dashboard')).status_code, 403)
        self.client.force_login(self.admin)
        body = self.client.get(reverse('campaigns:dashboard')).json()
        self.assertEqual(body['campaigns_by_status']['pending'], 1)
        self.assertEqual(body['campaigns_by_status']['approved'], 1)
        self.assertEqual(body['total_raised'], 1200)
        self.assertEqual(len(body['pending_applications']), 1)


class CampaignAdminTests(TestCase):
    def setUp(self):
        self.staff = User.objects.create_superuser(username='root@example.com', email='root@example.com', password='s3cret-pass')
        self.client.force_login(self.staff)
        self.campaign = make_campaign(make_user('student@example.com', first_name='Achieng', last_name='Otieno'),
                                      status=Campaign.STATUS_PENDING)
        self.changelist = reverse('admin:campaigns_campaign_changelist')

    def test_approve_action(self):
        self.client.post(self.changelist, {'action': 'approve_selected', '_selected_action': [self.campaign.pk]})
        self.campaign.refresh_from_db()
        self.assertEqual(self.campaign.status, Campaign.STATUS_APPROVED)
        self.assertEqual(self.campaign.verified_by, self.staff)

    def test_change_form_cannot_set_status(self):
        url = reverse('admin:campaigns_campaign_change', args=[self.campaign.pk])
        resp = self.client.post(url, {
            'user': self.campaign.user_id,
            'status': Campaign.STATUS_APPROVED,
            'is_active': 'on',
            'deadline_0': '',
            'deadline_1': '',
            'institution': self.campaign.institution,
            'course': self.campaign.course,
            'year_of_study': self.campaign.year_of_study,
            'student_id': '',
            'funding_type': self.campaign.funding_type,
            'amount_needed': self.campaign.amount_needed,
            'story': self.campaign.story,
            'admin_notes': 'Called the registrar',
            'updates-TOTAL_FORMS': '0',
            'updates-INITIAL_FORMS': '0',
            'updates-MIN_NUM_FORMS': '0',
            'updates-MAX_NUM_FORMS': '1000',
            '_save': 'Save',
        })
        self.assertEqual(resp.status_code, 302)
        self.campaign.refresh_from_db()
        self.assertEqual(self.campaign.admin_notes, 'Called the registrar')
        self.assertEqual(self.campaign.status, Campaign.STATUS_PENDING)
        self.assertIsNone(self.campaign.verified_by)

    def test_export_csv(self):
        resp = self.client.post(self.changelist, {'action': 'export_csv', '_selected_action': [self.campaign.pk]})
        self.assertEqual(resp.status_code, 200)
        self.assertIn('attachment; filename="campaigns_', resp['Content-Disposition'])
        rows = resp.content.decode('utf-8').splitlines()
        self.assertEqual(len(rows), 2)
        self.assertIn('Achieng Otieno', rows[1])
        self.assertIn('Pending review', rows[1])


__all__ = [
    'CampaignModelTests',
    'CampaignApiTests',
    'CampaignAdminTests',
]
