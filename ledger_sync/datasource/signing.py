"""
OKX request signing

Every private endpoint call carries an HMAC-SHA256 signature over
timestamp + method + request path (including the query string).
"""

import base64
import hashlib
import hmac
from datetime import datetime, timezone
from typing import Dict, Optional

from ..utils.config import ApiCredentials


def iso_timestamp(now: Optional[datetime] = None) -> str:
    """UTC timestamp with millisecond precision, e.g. 2024-12-06T09:30:00.123Z"""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now = now.astimezone(timezone.utc)
    return now.strftime('%Y-%m-%dT%H:%M:%S.') + f"{now.microsecond // 1000:03d}Z"


def compute_signature(message: str, secret: str) -> str:
    """Base64-encoded HMAC-SHA256 of message keyed by secret"""
    digest = hmac.new(secret.encode('utf-8'), message.encode('utf-8'), hashlib.sha256).digest()
    return base64.b64encode(digest).decode('ascii')


def sign_request(method: str, request_path: str, query: str,
                 credentials: ApiCredentials,
                 now: Optional[datetime] = None) -> Dict[str, str]:
    """
    Build authentication headers for one request

    Args:
        method: HTTP method, e.g. "GET"
        request_path: API path without host, e.g. "/api/v5/account/bills-archive"
        query: Query string including the leading "?", or "" when absent
        credentials: API key, secret and passphrase
        now: Clock override for deterministic signatures

    Returns:
        Dict of request headers
    """
    timestamp = iso_timestamp(now)
    message = timestamp + method.upper() + request_path + query

    headers = {
        'OK-ACCESS-KEY': credentials.api_key,
        'OK-ACCESS-SIGN': compute_signature(message, credentials.secret_key),
        'OK-ACCESS-TIMESTAMP': timestamp,
        'OK-ACCESS-PASSPHRASE': credentials.passphrase,
    }
    if credentials.simulated:
        headers['x-simulated-trading'] = '1'

    return headers
