from django import forms
from django.contrib.auth.password_validation import validate_password

from .models import User


class RegistrationForm(forms.ModelForm):
    first_name = forms.CharField(max_length=50)
    last_name = forms.CharField(max_length=50)
    password = forms.CharField(min_length=8, strip=False)
    role = forms.ChoiceField(
        choices=[(User.ROLE_STUDENT, 'Student'), (User.ROLE_DONOR, 'Donor')],
        required=False,
    )

    class Meta:
        model = User
        fields = ['first_name', 'last_name', 'email', 'phone', 'role']

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        for name in ('email', 'phone'):
            self.fields[name].required = True

    def clean_email(self):
        email = self.cleaned_data['email'].strip().lower()
        if User.objects.filter(email__iexact=email).exists():
            raise forms.ValidationError('User with this email already exists')
        return email

    def clean_role(self):
        return self.cleaned_data.get('role') or User.ROLE_DONOR

    def clean_password(self):
        password = self.cleaned_data['password']
        validate_password(password)
        return password

    def save(self, commit=True):
        user = super().save(commit=False)
        user.username = user.email
        user.set_password(self.cleaned_data['password'])
        if commit:
            user.save()
        return user


class LoginForm(forms.Form):
    email = forms.EmailField()
    password = forms.CharField(strip=False)


class ProfileForm(forms.ModelForm):
    first_name = forms.CharField(max_length=50, required=False)
    last_name = forms.CharField(max_length=50, required=False)

    class Meta:
        model = User
        fields = ['first_name', 'last_name', 'phone']

    @classmethod
    def for_update(cls, user, data):
        """Bind a partial update: blank or missing values keep the current ones."""
        merged = {name: getattr(user, name) for name in cls._meta.fields}
        for name in cls._meta.fields:
            if data.get(name):
                merged[name] = data.get(name)
        return cls(merged, instance=user)

    def save_profile(self):
        """Write the profile columns only, donor totals are maintained by the ledger."""
        user = super().save(commit=False)
        user.save(update_fields=list(self._meta.fields))
        return user


class PasswordUpdateForm(forms.Form):
    current_password = forms.CharField(strip=False)
    new_password = forms.CharField(min_length=8, strip=False)

    def __init__(self, user, *args, **kwargs):
        self.user = user
        super().__init__(*args, **kwargs)

    def clean_new_password(self):
        password = self.cleaned_data['new_password']
        validate_password(password, self.user)
        return password

    def current_password_matches(self):
        return self.user.check_password(self.cleaned_data['current_password'])

    def save(self):
        self.user.set_password(self.cleaned_data['new_password'])
        self.user.save(update_fields=['password'])
        return self.user
