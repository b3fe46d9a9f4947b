from __future__ import annotations

import base64
import hashlib
import hmac
import json
from datetime import timedelta

from coursetrack.config import settings
from coursetrack.core.time_provider import TimeProvider, default_time_provider


DEFAULT_TOKEN_TTL = timedelta(hours=12)


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode('ascii').rstrip('=')


def _b64url_decode(value: str) -> bytes:
    padding = '=' * (-len(value) % 4)
    return base64.urlsafe_b64decode((value + padding).encode('ascii'))


def _sign(signing_input: bytes) -> bytes:
    return hmac.new(settings.auth_secret.encode('utf-8'), signing_input, hashlib.sha256).digest()


def _encode_jwt(payload: dict) -> str:
    header = {'alg': 'HS256', 'typ': 'JWT'}
    header_part = _b64url_encode(json.dumps(header, separators=(',', ':')).encode('utf-8'))
    payload_part = _b64url_encode(json.dumps(payload, separators=(',', ':')).encode('utf-8'))
    signing_input = f'{header_part}.{payload_part}'.encode('ascii')
    return f'{header_part}.{payload_part}.{_b64url_encode(_sign(signing_input))}'


def _decode_jwt(token: str) -> dict | None:
    try:
        header_part, payload_part, signature_part = token.split('.')
    except ValueError:
        return None

    try:
        signing_input = f'{header_part}.{payload_part}'.encode('ascii')
        provided_signature = _b64url_decode(signature_part)
    except ValueError:
        return None
    if not hmac.compare_digest(provided_signature, _sign(signing_input)):
        return None

    try:
        payload = json.loads(_b64url_decode(payload_part).decode('utf-8'))
    except (ValueError, json.JSONDecodeError, UnicodeDecodeError):
        return None

    if not isinstance(payload, dict):
        return None
    return payload


def issue_token(
    user_id: int,
    role: str,
    email: str,
    *,
    ttl: timedelta = DEFAULT_TOKEN_TTL,
    time_provider: TimeProvider = default_time_provider,
) -> str:
    """Signs a bearer token; issuing tokens to end users happens outside this service."""
    expires_at = time_provider.now() + ttl
    return _encode_jwt({'sub': int(user_id), 'role': role, 'email': email, 'exp': int(expires_at.timestamp())})


def validate_session_token(token: str | None, *, time_provider: TimeProvider = default_time_provider) -> dict | None:
    if not token:
        return None
    payload = _decode_jwt(token)
    if not payload:
        return None

    user_id = payload.get('sub')
    role = payload.get('role')
    if user_id is None or not role:
        return None
    expires_at = payload.get('exp')
    if expires_at is not None and int(expires_at) <= int(time_provider.now().timestamp()):
        return None
    return {
        'user_id': int(user_id),
        'role': str(role).strip().lower(),
        'email': str(payload.get('email') or ''),
    }
