import json

from django.http import JsonResponse, QueryDict


def parse_body(request):
    """Return the request payload as a QueryDict-like mapping.

    JSON bodies are accepted alongside regular form posts so the same views
    serve the site forms and API clients.
    """
    content_type = request.content_type or ''
    if content_type.startswith('application/json'):
        try:
            data = json.loads(request.body.decode('utf-8') or '{}')
        except (UnicodeDecodeError, ValueError):
            return None
        if not isinstance(data, dict):
            return None
        return data
    if request.method == 'POST':
        return request.POST
    # PUT/PATCH form bodies are not parsed by Django
    return QueryDict(request.body, encoding=request.encoding)


def json_error(message, status=400, code=None, errors=None):
    payload = {'success': False, 'message': message}
    if code:
        payload['code'] = code
    if errors:
        payload['errors'] = errors
    return JsonResponse(payload, status=status)


def form_errors(form):
    return {field: [str(e) for e in errs] for field, errs in form.errors.items()}


def get_client_ip(request):
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        return x_forwarded_for.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')
