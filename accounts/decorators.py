from functools import wraps

from lift_site.api import json_error


def json_login_required(view_func):
    """Like login_required, but answers API clients with a 401 instead of a redirect."""
    @wraps(view_func)
    def _wrapped(request, *args, **kwargs):
        if not request.user.is_authenticated:
            return json_error('Authentication required', status=401, code='not_authenticated')
        return view_func(request, *args, **kwargs)
    return _wrapped


def role_required(*roles):
    def decorator(view_func):
        @wraps(view_func)
        @json_login_required
        def _wrapped(request, *args, **kwargs):
            user = request.user
            allowed = user.role in roles or ('admin' in roles and user.is_platform_admin)
            if not allowed:
                return json_error(f"Role '{user.role}' is not authorized to access this route", status=403, code='forbidden')
            return view_func(request, *args, **kwargs)
        return _wrapped
    return decorator
