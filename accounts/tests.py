import json

from django.test import TestCase
from django.urls import reverse

from accounts.forms import ProfileForm
from accounts.models import User, increment_donor_totals

PASSWORD = 'Harambee-2024!'


class RegistrationTests(TestCase):
    def register(self, **extra):
        payload = {
            'first_name': 'Wanjiru',
            'last_name': 'Kamau',
            'email': 'Wanjiru@Example.com',
            'phone': '+254712345678',
            'password': PASSWORD,
        }
        payload.update(extra)
        return self.client.post(reverse('accounts:register'), data=json.dumps(payload), content_type='application/json')

    def test_register_defaults_to_donor_and_logs_in(self):
        resp = self.register()
        self.assertEqual(resp.status_code, 201)
        user = User.objects.get()
        self.assertEqual(user.email, 'wanjiru@example.com')
        self.assertEqual(user.role, User.ROLE_DONOR)
        self.assertEqual((user.total_donations, user.donation_count), (0, 0))
        self.assertEqual(self.client.get(reverse('accounts:me')).json()['user']['email'], 'wanjiru@example.com')

    def test_register_student(self):
        self.assertEqual(self.register(role='student').status_code, 201)
        self.assertEqual(User.objects.get().role, User.ROLE_STUDENT)

    def test_cannot_self_register_as_admin(self):
        resp = self.register(role='admin')
        self.assertEqual(resp.status_code, 400)
        self.assertIn('role', resp.json()['errors'])

    def test_duplicate_email_rejected(self):
        self.register()
        self.client.logout()
        resp = self.register(email='wanjiru@example.COM')
        self.assertEqual(resp.status_code, 400)
        self.assertIn('email', resp.json()['errors'])
        self.assertEqual(User.objects.count(), 1)

    def test_invalid_phone_rejected(self):
        resp = self.register(phone='12345')
        self.assertEqual(resp.status_code, 400)
        self.assertIn('phone', resp.json()['errors'])


class LoginTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(
            username='donor@example.com', email='donor@example.com', password=PASSWORD, role=User.ROLE_DONOR
        )

    def login(self, email='donor@example.com', password=PASSWORD):
        return self.client.post(
            reverse('accounts:login'),
            data=json.dumps({'email': email, 'password': password}),
            content_type='application/json',
        )

    def test_login_ok(self):
        resp = self.login(email='DONOR@example.com')
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()['user']['id'], self.user.pk)

    def test_wrong_password(self):
        resp = self.login(password='nope-nope')
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json()['code'], 'invalid_credentials')

    def test_inactive_account(self):
        User.objects.filter(pk=self.user.pk).update(is_active=False)
        resp = self.login()
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(resp.json()['code'], 'inactive')

    def test_me_requires_auth(self):
        self.assertEqual(self.client.get(reverse('accounts:me')).status_code, 401)
        self.login()
        self.assertEqual(self.client.get(reverse('accounts:me')).status_code, 200)
        self.client.post(reverse('accounts:logout'))
        self.assertEqual(self.client.get(reverse('accounts:me')).status_code, 401)


class ProfileTests(TestCase):
    def setUp(self):
        self.user = User.objects.create_user(
            username='donor@example.com', email='donor@example.com', password=PASSWORD,
            first_name='Otieno', last_name='Ouma', phone='0712345678',
        )
        self.client.force_login(self.user)

    def put(self, name, payload):
        return self.client.put(reverse(name), data=json.dumps(payload), content_type='application/json')

    def test_update_profile(self):
        resp = self.put('accounts:update_profile', {'first_name': 'Akinyi', 'phone': '+254700000001'})
        self.assertEqual(resp.status_code, 200)
        self.user.refresh_from_db()
        self.assertEqual((self.user.first_name, self.user.last_name, self.user.phone), ('Akinyi', 'Ouma', '+254700000001'))

    def test_update_keeps_donor_totals(self):
        form_user = User.objects.get(pk=self.user.pk)
        # A donation lands while the profile request is in flight
        increment_donor_totals(self.user.pk, 2500)
        form = ProfileForm.for_update(form_user, {'last_name': 'Wekesa'})
        self.assertTrue(form.is_valid(), form.errors)
        form.save_profile()
        self.user.refresh_from_db()
        self.assertEqual(self.user.last_name, 'Wekesa')
        self.assertEqual((self.user.total_donations, self.user.donation_count), (2500, 1))

    def test_update_rejects_invalid_phone(self):
        resp = self.put('accounts:update_profile', {'phone': '12345'})
        self.assertEqual(resp.status_code, 400)
        self.assertIn('phone', resp.json()['errors'])
        self.user.refresh_from_db()
        self.assertEqual(self.user.phone, '0712345678')

    def test_update_requires_auth(self):
        self.client.logout()
        self.assertEqual(self.put('accounts:update_profile', {'first_name': 'X'}).status_code, 401)

    def test_change_password(self):
        resp = self.put('accounts:change_password', {'current_password': PASSWORD, 'new_password': 'Nyeri-Coffee-88'})
        self.assertEqual(resp.status_code, 200)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('Nyeri-Coffee-88'))
        # The session that changed the password stays logged in
        self.assertEqual(self.client.get(reverse('accounts:me')).status_code, 200)

    def test_change_password_checks_current(self):
        resp = self.put('accounts:change_password', {'current_password': 'wrong-one', 'new_password': 'Nyeri-Coffee-88'})
        self.assertEqual(resp.status_code, 401)
        resp = self.put('accounts:change_password', {'current_password': PASSWORD, 'new_password': 'short'})
        self.assertEqual(resp.status_code, 400)
        self.assertIn('new_password', resp.json()['errors'])
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password(PASSWORD))


class DonorTotalsTests(TestCase):
    def test_increment_donor_totals(self):
        user = User.objects.create_user(username='d@example.com', email='d@example.com', password=PASSWORD)
        self.assertTrue(increment_donor_totals(user.pk, 1500))
        self.assertTrue(increment_donor_totals(user.pk, 500))
        self.assertTrue(increment_donor_totals(user.pk, -500, count=-1))
        user.refresh_from_db()
        self.assertEqual((user.total_donations, user.donation_count), (1500, 1))

    def test_missing_user(self):
        self.assertFalse(increment_donor_totals(9999, 100))

    def test_platform_admin(self):
        staff = User.objects.create_user(username='s@example.com', email='s@example.com', password=PASSWORD, is_staff=True)
        self.assertTrue(staff.is_platform_admin)
        self.assertTrue(User(role=User.ROLE_ADMIN).is_platform_admin)
        self.assertFalse(User(role=User.ROLE_STUDENT).is_platform_admin)


__all__ = [
    'RegistrationTests',
    'LoginTests',
    'ProfileTests',
    'DonorTotalsTests',
]
