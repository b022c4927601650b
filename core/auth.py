"""Authentication gate for the JSON API.

``api_login_required`` rejects anonymous callers with HTTP 401 and
``admin_required`` rejects authenticated non-staff users with HTTP 403.
Both answer with a JSON ``{"error": ...}`` body instead of redirecting to
a login page.  Views behind the gate can rely on ``request.user`` being
an authenticated admin.
"""

from __future__ import annotations

from functools import wraps
from typing import Callable

from django.contrib.auth.models import User
from django.http import HttpRequest, HttpResponse, JsonResponse


def is_admin(user: User) -> bool:
    return bool(user and user.is_authenticated and user.is_active and (user.is_staff or user.is_superuser))


def api_login_required(view: Callable[..., HttpResponse]) -> Callable[..., HttpResponse]:
    @wraps(view)
    def wrapper(request: HttpRequest, *args, **kwargs) -> HttpResponse:
        if not request.user.is_authenticated:
            return JsonResponse({'error': 'Authentication required.'}, status=401)
        return view(request, *args, **kwargs)

    return wrapper


def admin_required(view: Callable[..., HttpResponse]) -> Callable[..., HttpResponse]:
    """Require an authenticated staff user."""

    @api_login_required
    @wraps(view)
    def wrapper(request: HttpRequest, *args, **kwargs) -> HttpResponse:
        if not is_admin(request.user):
            return JsonResponse({'error': 'Administrator access required.'}, status=403)
        return view(request, *args, **kwargs)

    return wrapper
