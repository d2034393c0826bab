"""
OKX bills API access: request signing, pagination and error types
"""

from .base import (
    BillsAPIError,
    TransportError,
    RateLimitError,
    RemoteHTTPError,
    RemoteBusinessError,
    MalformedResponseError
)
from .bills import BillFetcher, RawBillEvent
from .signing import sign_request, compute_signature, iso_timestamp

__all__ = [
    'BillFetcher',
    'RawBillEvent',
    'sign_request',
    'compute_signature',
    'iso_timestamp',
    'BillsAPIError',
    'TransportError',
    'RateLimitError',
    'RemoteHTTPError',
    'RemoteBusinessError',
    'MalformedResponseError'
]
