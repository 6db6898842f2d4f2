from __future__ import annotations

import hashlib
import logging
from functools import wraps

from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.http import JsonResponse
from django.middleware.csrf import CsrfViewMiddleware
from django.views.decorators.csrf import csrf_exempt

from .identity import IdentityProviderClient, IdentityProviderError


logger = logging.getLogger(__name__)

CACHE_PREFIX = "principal:"


def bearer_token(request) -> str | None:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def _cache_key(token: str) -> str:
    return CACHE_PREFIX + hashlib.sha256(token.encode("utf-8")).hexdigest()


def forget_token(token: str) -> None:
    cache.delete(_cache_key(token))


def user_for_profile(profile: dict, *, create: bool = False):
    """
    Map an identity-provider profile onto a local user by e-mail.
    New users are never staff; staff rights are granted locally.
    """
    email = (profile.get("email") or "").strip().lower()
    if not email:
        return None

    User = get_user_model()
    user = User.objects.filter(email__iexact=email).first()
    if user is not None or not create:
        return user

    user = User(username=email[:150], email=email, first_name=(profile.get("name") or "")[:150])
    user.set_unusable_password()
    user.save()
    logger.info("Created local user %s for identity-provider principal", user.pk)
    return user


def resolve_bearer_principal(token: str, *, client: IdentityProviderClient | None = None):
    key = _cache_key(token)
    user_id = cache.get(key)
    User = get_user_model()
    if user_id is not None:
        user = User.objects.filter(pk=user_id, is_active=True).first()
        if user is not None:
            return user

    profile = (client or IdentityProviderClient()).fetch_profile(token)
    user = user_for_profile(profile, create=True)
    if user is None or not user.is_active:
        raise IdentityProviderError("The access token does not identify an active user.", status=401)

    cache.set(key, user.pk, settings.OAUTH_PRINCIPAL_CACHE_SECONDS)
    return user


def _csrf_failure(request):
    """
    Session-authenticated requests keep CSRF protection even though the
    API views themselves are csrf_exempt for bearer clients.
    """
    check = CsrfViewMiddleware(lambda req: None)
    check.process_request(request)
    return check.process_view(request, None, (), {})


def principal_required(view=None, *, staff: bool = False):
    """
    Resolve the caller and pass it to the view as `principal`.

    Accepts a bearer token issued by the identity provider or an existing
    Django session (admin users, tests).
    """

    def decorator(view_func):
        @csrf_exempt
        @wraps(view_func)
        def wrapper(request, *args, **kwargs):
            token = bearer_token(request)
            if token:
                try:
                    principal = resolve_bearer_principal(token)
                except IdentityProviderError as exc:
                    return JsonResponse({"error": exc.message}, status=exc.status)
            elif request.user.is_authenticated:
                principal = request.user
                rejected = _csrf_failure(request)
                if rejected is not None:
                    return JsonResponse({"error": "CSRF verification failed."}, status=403)
            else:
                return JsonResponse({"error": "Authentication required."}, status=401)

            if staff and not principal.is_staff:
                return JsonResponse({"error": "Administrator access required."}, status=403)

            return view_func(request, *args, principal=principal, **kwargs)

        return wrapper

    if view is not None:
        return decorator(view)
    return decorator
