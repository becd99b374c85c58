import logging

from django.contrib.auth import authenticate, login, logout, update_session_auth_hash
from django.http import JsonResponse
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from lift_site.api import form_errors, json_error, parse_body
from .decorators import json_login_required
from .forms import LoginForm, PasswordUpdateForm, ProfileForm, RegistrationForm
from .models import User
from .serializers import user_detail

logger = logging.getLogger(__name__)


@require_POST
def register(request):
    data = parse_body(request)
    if data is None:
        return json_error('Invalid payload')
    form = RegistrationForm(data)
    if not form.is_valid():
        return json_error('Invalid registration data', errors=form_errors(form))
    user = form.save()
    login(request, user, backend='django.contrib.auth.backends.ModelBackend')
    logger.info("Registered %s user %s", user.role, user.pk)
    return JsonResponse({
        'success': True,
        'message': 'Registration successful.',
        'user': user_detail(user),
    }, status=201)


@require_POST
def login_view(request):
    data = parse_body(request)
    if data is None:
        return json_error('Invalid payload')
    form = LoginForm(data)
    if not form.is_valid():
        return json_error('Email and password are required', errors=form_errors(form))
    email = form.cleaned_data['email'].lower()
    user = authenticate(request, username=email, password=form.cleaned_data['password'])
    if user is None:
        # ModelBackend refuses inactive users, tell them apart from bad credentials
        inactive = User.objects.filter(username=email, is_active=False).first()
        if inactive is not None and inactive.check_password(form.cleaned_data['password']):
            return json_error('Account is deactivated', status=403, code='inactive')
        return json_error('Invalid credentials', status=401, code='invalid_credentials')
    login(request, user)
    return JsonResponse({'success': True, 'user': user_detail(user)})


@require_POST
def logout_view(request):
    logout(request)
    return JsonResponse({'success': True, 'message': 'Logged out'})


@require_GET
@json_login_required
def me(request):
    return JsonResponse({'success': True, 'user': user_detail(request.user)})


@require_http_methods(['PUT', 'PATCH', 'POST'])
@json_login_required
def update_profile(request):
    data = parse_body(request)
    if data is None:
        return json_error('Invalid payload')
    form = ProfileForm.for_update(request.user, data)
    if not form.is_valid():
        return json_error('Invalid profile data', errors=form_errors(form))
    user = form.save_profile()
    return JsonResponse({'success': True, 'message': 'Profile updated successfully', 'user': user_detail(user)})


@require_http_methods(['PUT', 'POST'])
@json_login_required
def change_password(request):
    data = parse_body(request)
    if data is None:
        return json_error('Invalid payload')
    form = PasswordUpdateForm(request.user, data)
    if not form.is_valid():
        return json_error('Current and new password are required', errors=form_errors(form))
    if not form.current_password_matches():
        return json_error('Current password is incorrect', status=401, code='invalid_credentials')
    user = form.save()
    # Keep this session logged in, other sessions of the user are invalidated
    update_session_auth_hash(request, user)
    logger.info("User %s changed their password", user.pk)
    return JsonResponse({'success': True, 'message': 'Password updated successfully'})
