import hashlib
import hmac
import json
import threading
from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal
from unittest import mock

from django.db import DatabaseError, OperationalError, connection
from django.test import TestCase, TransactionTestCase, override_settings
from django.urls import reverse
from django.utils import timezone

from accounts.models import User
from campaigns.models import Campaign
from payments import ledger
from payments.exceptions import (
    AlreadyRefunded,
    CampaignNotEligible,
    ConcurrencyConflict,
    DonationNotRefundable,
    InvalidInput,
    InvalidTransition,
    RefundUnauthorized,
    RefundWindowExpired,
)
from payments.fees import compute_fees
from payments.models import Donation
from payments.signals import campaign_goal_reached, donation_completed, donation_refunded

STORY = "I am a first generation university student studying hard to finish my degree. " * 3


def half_up(value):
    return int(Decimal(value).quantize(Decimal('1'), rounding=ROUND_HALF_UP))


def make_user(email, role=User.ROLE_DONOR, **extra):
    return User.objects.create_user(username=email, email=email, password='s3cret-pass', role=role, **extra)


def make_campaign(owner=None, status=Campaign.STATUS_APPROVED, amount_needed=100000, **extra):
    owner = owner or make_user(f"student{User.objects.count()}@example.com", role=User.ROLE_STUDENT)
    return Campaign.objects.create(
        user=owner,
        institution='University of Nairobi',
        course='Computer Science',
        year_of_study=2,
        amount_needed=amount_needed,
        funding_type='tuition',
        story=STORY,
        status=status,
        **extra,
    )


class FeeComputationTests(TestCase):
    def test_card_example(self):
        fees = compute_fees(1000, 'card')
        self.assertEqual(fees.platform_fee, 50)
        self.assertEqual(fees.payment_processing_fee, 59)
        self.assertEqual(fees.net_amount, 891)

    def test_mobile_money_formula(self):
        for amount in list(range(100, 1200)) + [5000, 12345, 999999]:
            fees = compute_fees(amount, 'mpesa')
            expected = amount - half_up(amount * Decimal('0.05')) - half_up(amount * Decimal('0.01'))
            self.assertEqual(fees.net_amount, expected, amount)
            self.assertGreater(fees.net_amount, 0)

    def test_card_formula(self):
        for amount in list(range(100, 1200)) + [5000, 12345, 999999]:
            fees = compute_fees(amount, 'card')
            expected = amount - half_up(amount * Decimal('0.05')) - (half_up(amount * Decimal('0.029')) + 30)
            self.assertEqual(fees.net_amount, expected, amount)
            self.assertGreater(fees.net_amount, 0)

    def test_other_methods_have_no_processing_fee(self):
        for method in ('bank', 'paypal'):
            fees = compute_fees(2000, method)
            self.assertEqual(fees.payment_processing_fee, 0)
            self.assertEqual(fees.net_amount, 1900)

    def test_rounds_half_up(self):
        # 150 * 5% = 7.5 and 150 * 1% = 1.5
        fees = compute_fees(150, 'mpesa')
        self.assertEqual(fees.platform_fee, 8)
        self.assertEqual(fees.payment_processing_fee, 2)
        self.assertEqual(fees.net_amount, 140)

    def test_same_input_same_result(self):
        self.assertEqual(compute_fees(4321, 'card'), compute_fees(4321, 'card'))

    def test_unknown_method_fails_fast(self):
        with self.assertRaises(ValueError):
            compute_fees(1000, 'bitcoin')

    def test_rejects_non_integer_amounts(self):
        with self.assertRaises(TypeError):
            compute_fees(100.5, 'card')
        with self.assertRaises(ValueError):
            compute_fees(0, 'card')


class DonationIntakeTests(TestCase):
    def setUp(self):
        self.donor = make_user('donor@example.com')
        self.campaign = make_campaign()

    def test_donation_completes_and_credits_campaign(self):
        donation = ledger.create_donation(self.donor, self.campaign.pk, 1000, 'card')
        self.assertEqual(donation.payment_status, Donation.STATUS_COMPLETED)
        self.assertEqual((donation.platform_fee, donation.payment_processing_fee, donation.net_amount), (50, 59, 891))
        self.assertIsNotNone(donation.completed_at)
        self.assertTrue(donation.transaction_id.startswith('LIFT-'))

        self.campaign.refresh_from_db()
        self.assertEqual(self.campaign.amount_raised, 891)
        self.assertEqual(self.campaign.donor_count, 1)

        self.donor.refresh_from_db()
        self.assertEqual(self.donor.total_donations, 1000)
        self.assertEqual(self.donor.donation_count, 1)

    def test_transaction_ids_are_unique(self):
        ids = {ledger.create_donation(self.donor, self.campaign.pk, 500, 'bank').transaction_id for _ in range(20)}
        self.assertEqual(len(ids), 20)

    def test_invalid_input_has_no_side_effects(self):
        cases = [
            (self.campaign.pk, 99, 'card'),
            (self.campaign.pk, 1000, 'bitcoin'),
            (None, 1000, 'card'),
            (self.campaign.pk, 100.0, 'card'),
        ]
        for campaign_id, amount, method in cases:
            with self.assertRaises(InvalidInput):
                ledger.create_donation(self.donor, campaign_id, amount, method)
        self.assertEqual(Donation.objects.count(), 0)

    def test_campaign_must_be_approved_and_active(self):
        pending = make_campaign(status=Campaign.STATUS_PENDING)
        inactive = make_campaign(is_active=False)
        for campaign in (pending, inactive):
            with self.assertRaises(CampaignNotEligible):
                ledger.create_donation(self.donor, campaign.pk, 1000, 'mpesa')
        with self.assertRaises(CampaignNotEligible) as ctx:
            ledger.create_donation(self.donor, 999999, 1000, 'mpesa')
        self.assertEqual(ctx.exception.status_code, 404)
        self.assertEqual(Donation.objects.count(), 0)

    def test_goal_crossing_completes_campaign(self):
        campaign = make_campaign(amount_needed=1000)
        Campaign.objects.filter(pk=campaign.pk).update(amount_raised=900, donor_count=3)
        received = []
        handler = lambda sender, campaign_id, **kw: received.append(campaign_id)
        campaign_goal_reached.connect(handler, weak=False)
        self.addCleanup(campaign_goal_reached.disconnect, handler)

        with self.captureOnCommitCallbacks(execute=True):
            # 158 by bank transfer: 8 platform fee, nets 150
            donation = ledger.create_donation(self.donor, campaign.pk, 158, 'bank')
        self.assertEqual(donation.net_amount, 150)

        campaign.refresh_from_db()
        self.assertEqual(campaign.amount_raised, 1050)
        self.assertEqual(campaign.donor_count, 4)
        self.assertEqual(campaign.status, Campaign.STATUS_COMPLETED)
        self.assertIsNotNone(campaign.completed_at)
        self.assertEqual(received, [campaign.pk])

    def test_goal_completion_happens_once(self):
        campaign = make_campaign(amount_needed=1000)
        self.assertTrue(ledger.apply_credit(campaign.pk, 1000))
        first_completion = Campaign.objects.get(pk=campaign.pk).completed_at
        self.assertFalse(ledger.apply_credit(campaign.pk, 500))
        campaign.refresh_from_db()
        self.assertEqual(campaign.amount_raised, 1500)
        self.assertEqual(campaign.completed_at, first_completion)

    def test_stale_reads_do_not_lose_updates(self):
        # Every "request" loads the campaign before any of them writes
        stale = [Campaign.objects.get(pk=self.campaign.pk) for _ in range(10)]
        for copy in stale:
            self.assertEqual(copy.amount_raised, 0)
            ledger.create_donation(self.donor, copy.pk, 1000, 'bank')
        self.campaign.refresh_from_db()
        self.assertEqual(self.campaign.amount_raised, 10 * 950)
        self.assertEqual(self.campaign.donor_count, 10)

    def test_completed_signal_sent_after_commit(self):
        received = []
        handler = lambda sender, donation, **kw: received.append(donation.pk)
        donation_completed.connect(handler, weak=False)
        self.addCleanup(donation_completed.disconnect, handler)
        with self.captureOnCommitCallbacks(execute=True):
            donation = ledger.create_donation(self.donor, self.campaign.pk, 1000, 'mpesa')
        self.assertEqual(received, [donation.pk])

    def test_donor_totals_failure_is_logged_not_raised(self):
        with mock.patch('payments.ledger.increment_donor_totals', side_effect=DatabaseError('boom')):
            with self.assertLogs('payments.ledger', level='ERROR') as logs:
                donation = ledger.create_donation(self.donor, self.campaign.pk, 1000, 'mpesa')
        self.assertIn('Could not update totals', logs.output[0])
        self.assertEqual(Donation.objects.get(pk=donation.pk).payment_status, Donation.STATUS_COMPLETED)
        self.campaign.refresh_from_db()
        self.assertEqual(self.campaign.amount_raised, donation.net_amount)

    @mock.patch('payments.ledger.time.sleep')
    def test_ledger_retries_on_lock_contention(self, _sleep):
        real_credit = ledger.apply_credit
        calls = []

        def flaky(campaign_id, net_amount):
            calls.append(campaign_id)
            if len(calls) == 1:
                raise OperationalError('database is locked')
            return real_credit(campaign_id, net_amount)

        with mock.patch('payments.ledger.apply_credit', side_effect=flaky):
            donation = ledger.create_donation(self.donor, self.campaign.pk, 1000, 'bank')
        self.assertEqual(len(calls), 2)
        self.assertEqual(Donation.objects.count(), 1)
        self.assertEqual(Donation.objects.get().pk, donation.pk)
        self.campaign.refresh_from_db()
        self.assertEqual(self.campaign.amount_raised, 950)
        self.assertEqual(self.campaign.donor_count, 1)

    @mock.patch('payments.ledger.time.sleep')
    def test_exhausted_retries_leave_no_orphan(self, _sleep):
        with mock.patch('payments.ledger.apply_credit', side_effect=OperationalError('database is locked')):
            with self.assertRaises(ConcurrencyConflict):
                ledger.create_donation(self.donor, self.campaign.pk, 1000, 'bank')
        self.assertEqual(Donation.objects.count(), 0)
        self.campaign.refresh_from_db()
        self.assertEqual(self.campaign.amount_raised, 0)


@override_settings(DONATION_SETTLE_IMMEDIATELY=False)
class GatewaySettlementTests(TestCase):
    def setUp(self):
        self.donor = make_user('donor@example.com')
        self.campaign = make_campaign()

    def test_donation_waits_for_confirmation(self):
        donation = ledger.create_donation(self.donor, self.campaign.pk, 1000, 'mpesa')
        self.assertEqual(donation.payment_status, Donation.STATUS_PENDING)
        self.campaign.refresh_from_db()
        self.assertEqual(self.campaign.amount_raised, 0)

        self.assertTrue(ledger.mark_processing(donation))
        self.assertTrue(ledger.complete_donation(donation, mpesa_receipt_number='QX12'))
        donation.refresh_from_db()
        self.assertEqual(donation.payment_status, Donation.STATUS_COMPLETED)
        self.assertEqual(donation.mpesa_receipt_number, 'QX12')
        self.campaign.refresh_from_db()
        self.assertEqual(self.campaign.amount_raised, donation.net_amount)

    def test_completion_is_idempotent(self):
        donation = ledger.create_donation(self.donor, self.campaign.pk, 1000, 'mpesa')
        self.assertTrue(ledger.complete_donation(donation))
        stale = Donation.objects.get(pk=donation.pk)
        stale.payment_status = Donation.STATUS_PENDING
        self.assertFalse(ledger.complete_donation(stale))
        self.campaign.refresh_from_db()
        self.assertEqual(self.campaign.donor_count, 1)
        self.donor.refresh_from_db()
        self.assertEqual(self.donor.donation_count, 1)

    def test_failed_donation_cannot_complete(self):
        donation = ledger.create_donation(self.donor, self.campaign.pk, 1000, 'card')
        self.assertTrue(ledger.fail_donation(donation))
        with self.assertRaises(InvalidTransition):
            ledger.complete_donation(donation)
        self.campaign.refresh_from_db()
        self.assertEqual(self.campaign.amount_raised, 0)


class RefundTests(TestCase):
    def setUp(self):
        self.donor = make_user('donor@example.com')
        self.campaign = make_campaign()
        # 100 by bank transfer nets 95
        self.donation = ledger.create_donation(self.donor, self.campaign.pk, 100, 'bank')

    def test_refund_reverses_campaign_credit(self):
        self.assertEqual(self.donation.net_amount, 95)
        received = []
        handler = lambda sender, donation, **kw: received.append(donation.pk)
        donation_refunded.connect(handler, weak=False)
        self.addCleanup(donation_refunded.disconnect, handler)
        with self.captureOnCommitCallbacks(execute=True):
            ledger.refund_donation(self.donation, self.donor, 'Changed my mind')

        self.campaign.refresh_from_db()
        self.assertEqual(self.campaign.amount_raised, 0)
        self.assertEqual(self.campaign.donor_count, 0)
        self.donation.refresh_from_db()
        self.assertEqual(self.donation.payment_status, Donation.STATUS_REFUNDED)
        self.assertEqual(self.donation.refunded_by, self.donor)
        self.assertEqual(received, [self.donation.pk])

    def test_refunding_twice_is_rejected(self):
        ledger.refund_donation(self.donation, self.donor, 'first')
        with self.assertRaises(AlreadyRefunded):
            ledger.refund_donation(self.donation, self.donor, 'second')
        # A stale copy still thinks it is completed
        stale = Donation.objects.get(pk=self.donation.pk)
        stale.payment_status = Donation.STATUS_COMPLETED
        with self.assertRaises(AlreadyRefunded):
            ledger.refund_donation(stale, self.donor, 'third')
        self.campaign.refresh_from_db()
        self.assertEqual(self.campaign.amount_raised, 0)
        self.assertEqual(self.campaign.donor_count, 0)

    def test_only_original_donor_may_refund(self):
        other = make_user('other@example.com')
        with self.assertRaises(RefundUnauthorized):
            ledger.refund_donation(self.donation, other, 'not mine')

    def test_refund_window(self):
        Donation.objects.filter(pk=self.donation.pk).update(created_at=timezone.now() - timedelta(days=7, minutes=1))
        self.donation.refresh_from_db()
        with self.assertRaises(RefundWindowExpired):
            ledger.refund_donation(self.donation, self.donor, 'too late')

        Donation.objects.filter(pk=self.donation.pk).update(created_at=timezone.now() - timedelta(days=6, hours=23))
        self.donation.refresh_from_db()
        ledger.refund_donation(self.donation, self.donor, 'just in time')
        self.assertEqual(self.donation.payment_status, Donation.STATUS_REFUNDED)

    @override_settings(DONATION_SETTLE_IMMEDIATELY=False)
    def test_pending_donation_is_not_refundable(self):
        pending = ledger.create_donation(self.donor, self.campaign.pk, 1000, 'card')
        with self.assertRaises(DonationNotRefundable):
            ledger.refund_donation(pending, self.donor, 'nope')

    def test_donor_totals_kept_on_refund_by_default(self):
        ledger.refund_donation(self.donation, self.donor, 'reason')
        self.donor.refresh_from_db()
        self.assertEqual(self.donor.total_donations, 100)
        self.assertEqual(self.donor.donation_count, 1)

    @override_settings(DONATION_REVERSE_DONOR_TOTALS_ON_REFUND=True)
    def test_donor_totals_reversed_when_configured(self):
        ledger.refund_donation(self.donation, self.donor, 'reason')
        self.donor.refresh_from_db()
        self.assertEqual(self.donor.total_donations, 0)
        self.assertEqual(self.donor.donation_count, 0)


class ConcurrentDonationTests(TransactionTestCase):
    def setUp(self):
        # Each thread opens its own connection; an in-memory SQLite database is not shared between them
        if connection.vendor == 'sqlite' and connection.is_in_memory_db():
            self.skipTest('needs a file or server test database')

    def test_parallel_donations_are_all_counted(self):
        donor = make_user('donor@example.com')
        campaign = make_campaign(amount_needed=10 ** 8)
        errors = []

        def give():
            try:
                ledger.create_donation(donor, campaign.pk, 1000, 'bank')
            except Exception as exc:  # surfaced through the assertion below
                errors.append(exc)
            finally:
                connection.close()

        threads = [threading.Thread(target=give) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        self.assertEqual(errors, [])
        campaign.refresh_from_db()
        self.assertEqual(campaign.amount_raised, 10 * 950)
        self.assertEqual(campaign.donor_count, 10)


class DonationApiTests(TestCase):
    def setUp(self):
        self.donor = make_user('donor@example.com')
        self.campaign = make_campaign()
        self.client.force_login(self.donor)

    def post_json(self, url, data):
        return self.client.post(url, data=json.dumps(data), content_type='application/json')

    def test_create_donation(self):
        resp = self.post_json(reverse('payments:collection'), {
            'campaign': self.campaign.pk, 'amount': 1000, 'payment_method': 'card', 'message': 'Good luck!',
        })
        self.assertEqual(resp.status_code, 201)
        body = resp.json()['donation']
        self.assertEqual(body['net_amount'], 891)
        self.assertEqual(body['payment_status'], 'completed')
        self.assertTrue(body['transaction_id'].startswith('LIFT-'))
        donation = Donation.objects.get(pk=body['donation_id'])
        self.assertTrue(donation.receive_updates)
        self.assertEqual(donation.ip_address, '127.0.0.1')

    def test_create_requires_login(self):
        self.client.logout()
        resp = self.post_json(reverse('payments:collection'), {'campaign': self.campaign.pk, 'amount': 1000, 'payment_method': 'card'})
        self.assertEqual(resp.status_code, 401)

    def test_create_rejects_invalid_input(self):
        resp = self.post_json(reverse('payments:collection'), {'campaign': self.campaign.pk, 'amount': 50, 'payment_method': 'card'})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()['code'], 'invalid_input')
        self.assertIn('amount', resp.json()['errors'])

    def test_create_rejects_ineligible_campaign(self):
        pending = make_campaign(status=Campaign.STATUS_PENDING)
        resp = self.post_json(reverse('payments:collection'), {'campaign': pending.pk, 'amount': 1000, 'payment_method': 'mpesa'})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()['code'], 'campaign_not_eligible')

    def test_form_post_is_accepted(self):
        resp = self.client.post(reverse('payments:collection'), {
            'campaign': self.campaign.pk, 'amount': '500', 'payment_method': 'mpesa', 'anonymous': 'on',
        })
        self.assertEqual(resp.status_code, 201)
        self.assertTrue(Donation.objects.get().anonymous)

    def test_refund_endpoint(self):
        donation = ledger.create_donation(self.donor, self.campaign.pk, 1000, 'mpesa')
        url = reverse('payments:refund', args=[donation.pk])
        resp = self.client.put(url, data=json.dumps({'reason': 'Duplicate payment'}), content_type='application/json')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()['donation']['payment_status'], 'refunded')
        resp = self.client.put(url, data=json.dumps({'reason': 'Again'}), content_type='application/json')
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.json()['code'], 'already_refunded')

    def test_refund_requires_reason_and_ownership(self):
        donation = ledger.create_donation(self.donor, self.campaign.pk, 1000, 'mpesa')
        url = reverse('payments:refund', args=[donation.pk])
        resp = self.client.put(url, data=json.dumps({}), content_type='application/json')
        self.assertEqual(resp.status_code, 400)
        self.client.force_login(make_user('other@example.com'))
        resp = self.client.put(url, data=json.dumps({'reason': 'x'}), content_type='application/json')
        self.assertEqual(resp.status_code, 403)

    def test_list_and_detail_are_scoped_to_donor(self):
        mine = ledger.create_donation(self.donor, self.campaign.pk, 1000, 'mpesa')
        other = make_user('other@example.com')
        theirs = ledger.create_donation(other, self.campaign.pk, 2000, 'card')
        resp = self.client.get(reverse('payments:collection'))
        self.assertEqual([d['id'] for d in resp.json()['donations']], [mine.pk])
        self.assertEqual(self.client.get(reverse('payments:detail', args=[theirs.pk])).status_code, 403)
        self.assertEqual(self.client.get(reverse('payments:detail', args=[mine.pk])).status_code, 200)
        self.assertEqual(self.client.get(reverse('payments:detail', args=[99999])).status_code, 404)

    def test_campaign_donations_hide_anonymous_donors(self):
        ledger.create_donation(self.donor, self.campaign.pk, 1000, 'mpesa', anonymous=True)
        ledger.create_donation(self.donor, self.campaign.pk, 500, 'mpesa')
        self.client.logout()
        resp = self.client.get(reverse('payments:campaign_donations', args=[self.campaign.pk]))
        donations = resp.json()['donations']
        self.assertEqual(len(donations), 2)
        by_amount = {d['amount']: d for d in donations}
        self.assertIsNone(by_amount[1000]['donor'])
        self.assertEqual(by_amount[500]['donor']['id'], self.donor.pk)

    def test_user_history(self):
        ledger.create_donation(self.donor, self.campaign.pk, 1000, 'mpesa')
        ledger.create_donation(self.donor, self.campaign.pk, 300, 'bank')
        resp = self.client.get(reverse('payments:user_donations', args=[self.donor.pk]))
        self.assertEqual(resp.json()['total_donated'], 1300)
        other = make_user('other@example.com')
        resp = self.client.get(reverse('payments:user_donations', args=[other.pk]))
        self.assertEqual(resp.status_code, 403)

    def test_stats_are_admin_only(self):
        ledger.create_donation(self.donor, self.campaign.pk, 1000, 'mpesa')
        ledger.create_donation(self.donor, self.campaign.pk, 3000, 'mpesa')
        self.assertEqual(self.client.get(reverse('payments:stats')).status_code, 403)
        self.client.force_login(make_user('admin@example.com', role=User.ROLE_ADMIN))
        stats = self.client.get(reverse('payments:stats')).json()['stats']
        self.assertEqual(stats['total_donations'], 2)
        self.assertEqual(stats['total_amount'], 4000)
        self.assertEqual(stats['average_donation'], 2000)
        self.assertEqual(stats['top_donors'][0]['donor']['id'], self.donor.pk)


@override_settings(DONATION_SETTLE_IMMEDIATELY=False, PAYMENT_WEBHOOK_SECRET='whsec_test', PAYMENT_WEBHOOK_DISABLE_VERIFY=False)
class WebhookTests(TestCase):
    def setUp(self):
        self.donor = make_user('donor@example.com')
        self.campaign = make_campaign()
        self.donation = ledger.create_donation(self.donor, self.campaign.pk, 1000, 'mpesa')

    def send(self, payload, secret='whsec_test'):
        body = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
        signature = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
        return self.client.post(
            reverse('payment_webhook'), data=body, content_type='application/json',
            HTTP_X_PAYMENT_SIGNATURE=signature,
        )

    def test_body_that_is_not_utf8_is_rejected(self):
        resp = self.send(b'{"transaction_id": "\xff\xfe"}')
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.content, b'Invalid payload')
        with override_settings(PAYMENT_WEBHOOK_DISABLE_VERIFY=True):
            resp = self.client.post(reverse('payment_webhook'), data=b'\xff\xfe', content_type='application/json')
        self.assertEqual(resp.status_code, 400)

    def test_non_ascii_signature_is_rejected(self):
        body = json.dumps({'transaction_id': self.donation.transaction_id, 'status': 'paid'})
        resp = self.client.post(
            reverse('payment_webhook'), data=body, content_type='application/json',
            HTTP_X_PAYMENT_SIGNATURE='sha256=éé',
        )
        self.assertEqual(resp.status_code, 400)
        self.donation.refresh_from_db()
        self.assertEqual(self.donation.payment_status, Donation.STATUS_PENDING)

    def test_completed_notification_settles_donation(self):
        resp = self.send({'data': {'object': {'transaction_id': self.donation.transaction_id, 'status': 'approved', 'id': 42, 'receipt': 'QX99'}}})
        self.assertEqual(resp.status_code, 200)
        self.donation.refresh_from_db()
        self.assertEqual(self.donation.payment_status, Donation.STATUS_COMPLETED)
        self.assertEqual(self.donation.gateway_reference, '42')
        self.assertEqual(self.donation.mpesa_receipt_number, 'QX99')
        self.campaign.refresh_from_db()
        self.assertEqual(self.campaign.amount_raised, self.donation.net_amount)

        # Gateways redeliver; the campaign is credited once
        self.send({'transaction_id': self.donation.transaction_id, 'status': 'paid'})
        self.campaign.refresh_from_db()
        self.assertEqual(self.campaign.donor_count, 1)

    def test_bad_signature_is_rejected(self):
        resp = self.send({'transaction_id': self.donation.transaction_id, 'status': 'paid'}, secret='wrong')
        self.assertEqual(resp.status_code, 400)
        self.donation.refresh_from_db()
        self.assertEqual(self.donation.payment_status, Donation.STATUS_PENDING)

    def test_failure_then_late_success_is_ignored(self):
        self.send({'transaction_id': self.donation.transaction_id, 'status': 'failed'})
        resp = self.send({'transaction_id': self.donation.transaction_id, 'status': 'paid'})
        self.assertEqual(resp.content, b'ignored')
        self.donation.refresh_from_db()
        self.assertEqual(self.donation.payment_status, Donation.STATUS_FAILED)
        self.campaign.refresh_from_db()
        self.assertEqual(self.campaign.amount_raised, 0)

    def test_unknown_reference(self):
        resp = self.send({'transaction_id': 'LIFT-NOPE', 'status': 'paid'})
        self.assertEqual(resp.status_code, 400)


__all__ = [
    'FeeComputationTests',
    'DonationIntakeTests',
    'GatewaySettlementTests',
    'RefundTests',
    'ConcurrentDonationTests',
    'DonationApiTests',
    'WebhookTests',
]
