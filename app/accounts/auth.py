"""
Bearer-token authentication and module entitlement checks.

The dashboard's identities live in the backend-as-a-service auth provider.
A request is accepted when:
1. it carries a bearer token (Authorization header, or a body fallback),
2. the provider resolves that token to a user,
3. a `users` profile exists for that identity,
4. the profile is active, holds the module key and has an allowed role.

Failures raise AuthGateError with 401 (identity problem) or 403
(entitlement problem). The message never says which check failed.
"""

from __future__ import annotations

import logging
import re
import unicodedata
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Optional

import jwt
import requests
from django.conf import settings
from django.core.exceptions import ValidationError

from .models import UserProfile

logger = logging.getLogger(__name__)

_COMBINING_RE = re.compile(r"[\u0300-\u036f]")

ROLE_ALIASES = {
    'administrador': 'admin',
    'admin': 'admin',
}


class AuthGateError(Exception):
    """Request rejected by the auth gate; carries the HTTP status to answer with."""

    def __init__(self, message: str, status: int):
        super().__init__(message)
        self.message = message
        self.status = status


@dataclass
class Caller:
    auth_uid: str
    profile: UserProfile


def normalize_role(role: Optional[str]) -> str:
    """Lowercase and strip accents; 'administrador' and 'admin' become 'admin'."""
    if not role:
        return ''
    value = unicodedata.normalize('NFD', str(role).lower())
    value = _COMBINING_RE.sub('', value)
    return ROLE_ALIASES.get(value, value)


def extract_bearer_token(auth_header: Optional[str], body: dict) -> str:
    token = ''
    if auth_header and auth_header.lower().startswith('bearer '):
        token = auth_header[7:].strip()
    if token:
        return token
    session_token = body.get('sessionToken')
    return session_token.strip() if isinstance(session_token, str) else ''


def token_metadata(token: str) -> dict:
    """Unverified exp/aud/iss claims, for server-side diagnostics only."""
    metadata = {'token_exp': None, 'token_aud': None, 'token_iss': None}
    try:
        claims = jwt.decode(token, options={'verify_signature': False})
    except jwt.PyJWTError:
        return metadata

    exp = claims.get('exp')
    if isinstance(exp, (int, float)) and not isinstance(exp, bool):
        try:
            metadata['token_exp'] = datetime.fromtimestamp(exp, tz=timezone.utc).isoformat()
        except (OverflowError, OSError, ValueError):
            pass
    metadata['token_aud'] = claims.get('aud')
    metadata['token_iss'] = claims.get('iss')
    return metadata


def require_auth_config():
    if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_ROLE_KEY:
        logger.error('Missing SUPABASE_URL/SUPABASE_SERVICE_ROLE_KEY settings')
        raise AuthGateError('Server configuration error', 500)


def fetch_auth_user(token: str) -> Optional[dict]:
    """
    Resolve a session token to the auth provider's user record.
    Returns None when the provider rejects the token or cannot be reached.
    """
    url = f"{settings.SUPABASE_URL.rstrip('/')}/auth/v1/user"
    try:
        response = requests.get(
            url,
            headers={
                'apikey': settings.SUPABASE_SERVICE_ROLE_KEY,
                'Authorization': f'Bearer {token}',
            },
            timeout=settings.AUTH_TIMEOUT_SECONDS,
        )
    except requests.RequestException as e:
        logger.error('Session validation request failed: %s', e)
        return None

    if response.status_code != 200:
        logger.warning('Session validation rejected token (status %s)', response.status_code)
        return None

    try:
        user = response.json()
    except ValueError:
        logger.error('Session validation returned a non-JSON body')
        return None

    if not isinstance(user, dict) or not user.get('id'):
        return None
    return user


def has_module_access(profile: UserProfile, module_key: str, allowed_roles: Iterable[str]) -> bool:
    modules = profile.modules if isinstance(profile.modules, list) else []
    return (
        profile.is_active is True
        and module_key in modules
        and normalize_role(profile.role) in set(allowed_roles)
    )


def authenticate_caller(auth_header: Optional[str], body: dict,
                        module_key: str, allowed_roles: Iterable[str]) -> Caller:
    token = extract_bearer_token(auth_header, body)
    logger.info(
        'auth header present? %s token in body? %s',
        bool(auth_header), isinstance(body.get('sessionToken'), str),
    )
    if not token:
        raise AuthGateError('Unauthorized', 401)

    user = fetch_auth_user(token)
    if user is None:
        meta = token_metadata(token)
        logger.error(
            'Auth error: exp=%s aud=%s iss=%s',
            meta['token_exp'], meta['token_aud'], meta['token_iss'],
        )
        raise AuthGateError('Unauthorized', 401)

    auth_uid = str(user['id'])
    try:
        profile = UserProfile.objects.get(auth_uid=auth_uid)
    except (UserProfile.DoesNotExist, ValidationError):
        logger.error('Profile not found for auth user %s', auth_uid)
        raise AuthGateError('Forbidden', 403)

    if not has_module_access(profile, module_key, allowed_roles):
        logger.error('Access denied for user: %s', auth_uid)
        raise AuthGateError('Forbidden', 403)

    return Caller(auth_uid=auth_uid, profile=profile)
