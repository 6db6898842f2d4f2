from __future__ import annotations

import json
import logging

from django.contrib.auth import get_user_model
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_POST

from .authentication import bearer_token, forget_token, principal_required, user_for_profile
from .forms import LoginForm, LogoutForm, RefreshForm
from .identity import IdentityProviderClient, IdentityProviderError, decode_jwt_claims


logger = logging.getLogger(__name__)


def serialize_user(user) -> dict | None:
    if user is None:
        return None
    return {
        "id": user.pk,
        "username": user.get_username(),
        "email": user.email,
        "name": user.get_full_name() or user.get_username(),
        "is_staff": user.is_staff,
        "groups": sorted(user.groups.values_list("name", flat=True)),
        "permissions": sorted(user.get_all_permissions()),
    }


def _payload(request) -> dict | None:
    try:
        payload = json.loads(request.body.decode("utf-8") or "{}")
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    return payload if isinstance(payload, dict) else None


def _invalid_json():
    return JsonResponse({"error": "Invalid JSON payload."}, status=400)


def _validation_error(form) -> JsonResponse:
    details = {
        field: [error["message"] for error in errors]
        for field, errors in form.errors.get_json_data().items()
    }
    return JsonResponse({"error": "Validation error.", "details": details}, status=422)


def _provider_error(exc: IdentityProviderError) -> JsonResponse:
    return JsonResponse({"error": exc.message, "details": exc.errors}, status=exc.status)


def _user_for_refreshed_token(client: IdentityProviderClient, access_token: str):
    """
    Best effort: a refreshed token is still returned when no profile can be
    matched to it.
    """
    claims = decode_jwt_claims(access_token)
    user = user_for_profile(claims) if claims.get("email") else None
    if user is None and claims.get("sub"):
        User = get_user_model()
        user = User.objects.filter(pk=claims["sub"]).first() if str(claims["sub"]).isdigit() else None

    if user is None:
        try:
            user = user_for_profile(client.fetch_profile(access_token))
        except IdentityProviderError as exc:
            logger.debug("Could not load user profile during refresh: %s", exc.message)
    return user


@csrf_exempt
@require_POST
def login_api(request):
    """
    POST /api/login/
    Payload (JSON):
      - email: str
      - password: str
    """
    payload = _payload(request)
    if payload is None:
        return _invalid_json()

    form = LoginForm(payload)
    if not form.is_valid():
        return _validation_error(form)

    client = IdentityProviderClient()
    try:
        grant = client.password_grant(
            username=form.cleaned_data["email"],
            password=form.cleaned_data["password"],
        )
    except IdentityProviderError as exc:
        return _provider_error(exc)

    user = user_for_profile({"email": form.cleaned_data["email"]})
    return JsonResponse({**grant.as_dict(), "user": serialize_user(user)})


@csrf_exempt
@require_POST
def refresh_api(request):
    """
    POST /api/refresh/
    Payload (JSON):
      - refresh_token: str
    """
    payload = _payload(request)
    if payload is None:
        return _invalid_json()

    form = RefreshForm(payload)
    if not form.is_valid():
        return _validation_error(form)

    client = IdentityProviderClient()
    try:
        grant = client.refresh_grant(refresh_token=form.cleaned_data["refresh_token"])
    except IdentityProviderError as exc:
        return _provider_error(exc)

    user = _user_for_refreshed_token(client, grant.access_token)
    return JsonResponse({**grant.as_dict(), "user": serialize_user(user)})


@require_POST
@principal_required
def logout_api(request, principal):
    """
    POST /api/logout/
    Payload (JSON, optional):
      - refresh_token: str
    """
    payload = _payload(request)
    if payload is None:
        return _invalid_json()

    form = LogoutForm(payload)
    if not form.is_valid():
        return _validation_error(form)

    client = IdentityProviderClient()
    access_token = bearer_token(request)
    if access_token:
        forget_token(access_token)
        client.revoke(access_token, token_type_hint="access_token")

    refresh_token = form.cleaned_data.get("refresh_token")
    if refresh_token:
        client.revoke(refresh_token, token_type_hint="refresh_token")

    logger.info("User %s logged out", principal.pk)
    return JsonResponse({"message": "Logged out successfully."})


@require_GET
@principal_required
def current_user_api(request, principal):
    """
    GET /api/user/
    """
    return JsonResponse(serialize_user(principal))
