"""
OKX bills-archive fetcher

Pages through /api/v5/account/bills-archive (roughly the last three months
of account history) with a cursor on the bill id. Rate-limit signals pause
and retry the same page; everything else that is not a success is fatal.
"""

import json
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests

from ..utils.config import ApiCredentials, FetchSettings
from ..utils.structured_logging import SyncLogger, SyncContext
from .base import (
    MalformedResponseError,
    RateLimitError,
    RemoteBusinessError,
    RemoteHTTPError,
    TransportError,
)
from .signing import sign_request

logger = logging.getLogger(__name__)

RATE_LIMIT_CODE = "50011"
SUCCESS_CODE = "0"
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _parse_decimal(value: Any, field_name: str) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    try:
        result = Decimal(str(value))
    except InvalidOperation as e:
        raise MalformedResponseError(f"Invalid {field_name} value: {value!r}") from e
    if not result.is_finite():
        raise MalformedResponseError(f"Non-finite {field_name} value: {value!r}")
    return result


@dataclass(frozen=True)
class RawBillEvent:
    """One balance-affecting line as reported by the exchange"""
    bill_id: str
    timestamp: datetime
    type: str
    sub_type: str
    balance_change: Decimal
    currency: str
    instrument_id: str = ""
    order_id: str = ""
    pnl: Decimal = Decimal("0")
    notes: str = ""

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> 'RawBillEvent':
        """Build from one element of the API "data" array"""
        if not isinstance(data, dict):
            raise MalformedResponseError(f"Bill entry is not an object: {data!r}")

        try:
            ts_ms = int(data['ts'])
        except (KeyError, TypeError, ValueError) as e:
            raise MalformedResponseError(f"Invalid bill timestamp: {data.get('ts')!r}") from e

        return cls(
            bill_id=str(data.get('billId', '')),
            timestamp=EPOCH + timedelta(milliseconds=ts_ms),
            type=str(data.get('type', '')),
            sub_type=str(data.get('subType', '')),
            balance_change=_parse_decimal(data.get('balChg'), 'balChg'),
            currency=str(data.get('ccy', '')),
            instrument_id=str(data.get('instId') or ''),
            order_id=str(data.get('ordId') or ''),
            pnl=_parse_decimal(data.get('pnl'), 'pnl'),
            notes=str(data.get('notes') or '')
        )

    @property
    def has_order(self) -> bool:
        return bool(self.order_id)


class BillFetcher:
    """
    Fetches the full bills archive for one account

    Sequential: one request in flight, blocking sleeps between
    pages and during rate-limit cooldowns.
    """

    def __init__(self, credentials: ApiCredentials,
                 settings: Optional[FetchSettings] = None,
                 session: Optional[requests.Session] = None,
                 sleep: Callable[[float], None] = time.sleep,
                 context: Optional[SyncContext] = None):
        self.credentials = credentials
        self.settings = settings or FetchSettings()
        self.session = session or requests.Session()
        self.sleep = sleep
        self.sync_logger = SyncLogger(__name__, context or SyncContext.create(
            component="bill_fetcher", simulated=credentials.simulated))

    def build_query(self, cursor: str = "") -> str:
        query = f"?limit={self.settings.page_size}"
        if cursor:
            query += f"&after={cursor}"
        return query

    def fetch_all(self) -> List[RawBillEvent]:
        """
        Fetch every bill the archive exposes, newest pages first

        Returns:
            List of RawBillEvent in API order

        Raises:
            TransportError: connection or timeout failure
            RateLimitError: retry ceiling reached (only when configured)
            RemoteHTTPError / RemoteBusinessError: non-success response
            MalformedResponseError: body is not the expected envelope
        """
        logger.info(f"Fetching OKX bills archive (page size {self.settings.page_size})")

        bills: List[RawBillEvent] = []
        cursor = ""
        page = 1
        attempt = 0

        while True:
            rate_limited, page_bills = self._request_page(cursor)

            if rate_limited:
                attempt += 1
                max_retries = self.settings.max_rate_limit_retries
                if max_retries is not None and attempt > max_retries:
                    raise RateLimitError(
                        f"Rate limited on page {page} after {max_retries} retries")
                self.sync_logger.rate_limit_event(
                    page=page,
                    attempt=attempt,
                    cooldown=self.settings.rate_limit_cooldown,
                    message=f"Rate limited, retrying page {page} in {self.settings.rate_limit_cooldown}s"
                )
                self.sleep(self.settings.rate_limit_cooldown)
                continue

            attempt = 0
            if not page_bills:
                break

            bills.extend(page_bills)
            cursor = page_bills[-1].bill_id
            self.sync_logger.page_event(
                page=page,
                count=len(page_bills),
                cursor=cursor,
                message=f"Page {page} fetched ({len(page_bills)} bills)"
            )
            page += 1

            if len(page_bills) < self.settings.page_size:
                break

            self.sleep(self.settings.page_delay)

        logger.info(f"Fetched {len(bills)} bills in {page - 1} page(s)")
        return bills

    def fetch_page(self, cursor: str = "") -> List[RawBillEvent]:
        """Fetch a single page; raises RateLimitError instead of retrying"""
        rate_limited, bills = self._request_page(cursor)
        if rate_limited:
            raise RateLimitError(f"Rate limited fetching page after cursor {cursor!r}")
        return bills

    def _request_page(self, cursor: str) -> Tuple[bool, List[RawBillEvent]]:
        """Send one signed request; returns (rate_limited, bills)"""
        query = self.build_query(cursor)
        path = self.settings.request_path
        headers = sign_request("GET", path, query, self.credentials)
        url = self.settings.base_url + path + query

        try:
            response = self.session.get(url, headers=headers, timeout=self.settings.request_timeout)
        except requests.RequestException as e:
            raise TransportError(f"Request to {path} failed: {e}") from e

        body = response.text

        if response.status_code != 200:
            if response.status_code == 429 or RATE_LIMIT_CODE in body:
                return True, []
            raise RemoteHTTPError(response.status_code, body)

        envelope = self._parse_envelope(body)
        code = envelope['code']

        if code != SUCCESS_CODE:
            if code == RATE_LIMIT_CODE:
                return True, []
            raise RemoteBusinessError(code, str(envelope.get('msg', '')))

        return False, [RawBillEvent.from_api(item) for item in envelope['data']]

    @staticmethod
    def _parse_envelope(body: str) -> Dict[str, Any]:
        try:
            envelope = json.loads(body)
        except ValueError as e:
            raise MalformedResponseError(f"Response is not valid JSON: {body[:200]}") from e

        if not isinstance(envelope, dict) or not isinstance(envelope.get('code'), str):
            raise MalformedResponseError(f"Unexpected response envelope: {body[:200]}")

        data = envelope.get('data')
        if data is None:
            envelope['data'] = []
        elif not isinstance(data, list):
            raise MalformedResponseError(f"Response data is not a list: {body[:200]}")

        return envelope
