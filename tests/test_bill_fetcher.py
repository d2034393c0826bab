"""
Tests for the paginated bills fetcher
"""

import pytest
import requests
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import call

from ledger_sync.datasource import (
    BillFetcher,
    RawBillEvent,
    MalformedResponseError,
    RateLimitError,
    RemoteBusinessError,
    RemoteHTTPError,
    TransportError
)
from ledger_sync.utils.config import FetchSettings

from conftest import make_bill, make_response, ok_page

BASE = "https://www.okx.com/api/v5/account/bills-archive"


def requested_urls(session):
    return [c.args[0] for c in session.get.call_args_list]


class TestRawBillEvent:

    def test_from_api(self):
        event = RawBillEvent.from_api(make_bill(
            bill_id="42", ts=1733477400123, bal_chg="-1.5", ord_id="ord-1",
            inst_id="ETH-USDT-SWAP", bill_type="2", pnl="0.25"))

        assert event.bill_id == "42"
        assert event.timestamp == datetime(2024, 12, 6, 9, 30, 0, 123000, tzinfo=timezone.utc)
        assert event.balance_change == Decimal("-1.5")
        assert event.pnl == Decimal("0.25")
        assert event.order_id == "ord-1"
        assert event.instrument_id == "ETH-USDT-SWAP"
        assert event.has_order

    def test_missing_optional_fields(self):
        event = RawBillEvent.from_api({'billId': '1', 'ts': '1000', 'type': '1', 'balChg': '50', 'ccy': 'USDT'})

        assert event.order_id == ""
        assert event.instrument_id == ""
        assert not event.has_order
        assert event.pnl == Decimal("0")

    def test_invalid_timestamp(self):
        with pytest.raises(MalformedResponseError):
            RawBillEvent.from_api(make_bill(ts="not-a-number"))

    def test_invalid_amount(self):
        with pytest.raises(MalformedResponseError):
            RawBillEvent.from_api(make_bill(bal_chg="abc"))

    @pytest.mark.parametrize("value", ["NaN", "Infinity", "-Infinity", "sNaN"])
    def test_non_finite_amount(self, value):
        with pytest.raises(MalformedResponseError):
            RawBillEvent.from_api(make_bill(bal_chg=value))

    def test_non_finite_pnl(self):
        with pytest.raises(MalformedResponseError):
            RawBillEvent.from_api(make_bill(pnl="NaN"))


class TestBillFetcherPagination:

    def _fetcher(self, credentials, settings, session, sleep):
        return BillFetcher(credentials, settings, session=session, sleep=sleep)

    def test_empty_first_page(self, credentials, small_page_settings, mock_session, mock_sleep):
        """An empty archive is a valid, empty result"""
        mock_session.get.return_value = ok_page([])

        bills = self._fetcher(credentials, small_page_settings, mock_session, mock_sleep).fetch_all()

        assert bills == []
        assert mock_session.get.call_count == 1
        mock_sleep.assert_not_called()

    def test_short_page_ends_pagination(self, credentials, small_page_settings, mock_session, mock_sleep):
        mock_session.get.return_value = ok_page([make_bill("1")])

        bills = self._fetcher(credentials, small_page_settings, mock_session, mock_sleep).fetch_all()

        assert [b.bill_id for b in bills] == ["1"]
        assert requested_urls(mock_session) == [f"{BASE}?limit=2"]
        mock_sleep.assert_not_called()

    def test_full_page_advances_cursor(self, credentials, small_page_settings, mock_session, mock_sleep):
        """A full page is always followed by another request using the last bill id"""
        mock_session.get.side_effect = [
            ok_page([make_bill("10"), make_bill("9")]),
            ok_page([make_bill("8"), make_bill("7")]),
            ok_page([make_bill("6")]),
        ]

        bills = self._fetcher(credentials, small_page_settings, mock_session, mock_sleep).fetch_all()

        assert [b.bill_id for b in bills] == ["10", "9", "8", "7", "6"]
        assert requested_urls(mock_session) == [
            f"{BASE}?limit=2",
            f"{BASE}?limit=2&after=9",
            f"{BASE}?limit=2&after=7",
        ]
        assert mock_sleep.call_args_list == [call(0.5), call(0.5)]

    def test_full_page_then_empty_page(self, credentials, small_page_settings, mock_session, mock_sleep):
        mock_session.get.side_effect = [
            ok_page([make_bill("2"), make_bill("1")]),
            ok_page([]),
        ]

        bills = self._fetcher(credentials, small_page_settings, mock_session, mock_sleep).fetch_all()

        assert len(bills) == 2
        assert mock_session.get.call_count == 2

    def test_signed_headers_and_timeout(self, credentials, small_page_settings, mock_session, mock_sleep):
        mock_session.get.return_value = ok_page([])

        self._fetcher(credentials, small_page_settings, mock_session, mock_sleep).fetch_all()

        kwargs = mock_session.get.call_args.kwargs
        assert kwargs['timeout'] == small_page_settings.request_timeout
        assert kwargs['headers']['OK-ACCESS-KEY'] == "test-key"
        assert kwargs['headers']['OK-ACCESS-PASSPHRASE'] == "test-pass"
        assert 'OK-ACCESS-SIGN' in kwargs['headers']

    def test_default_page_size(self, credentials, mock_session, mock_sleep):
        mock_session.get.return_value = ok_page([])

        BillFetcher(credentials, session=mock_session, sleep=mock_sleep).fetch_all()

        assert requested_urls(mock_session) == [f"{BASE}?limit=100"]


class TestBillFetcherRateLimit:

    def test_http_429_retries_same_page(self, credentials, small_page_settings, mock_session, mock_sleep):
        mock_session.get.side_effect = [
            ok_page([make_bill("4"), make_bill("3")]),
            make_response(429, text="Too Many Requests"),
            make_response(429, text="Too Many Requests"),
            ok_page([make_bill("2")]),
        ]

        fetcher = BillFetcher(credentials, small_page_settings, session=mock_session, sleep=mock_sleep)
        bills = fetcher.fetch_all()

        assert [b.bill_id for b in bills] == ["4", "3", "2"]
        assert requested_urls(mock_session)[1:] == [f"{BASE}?limit=2&after=3"] * 3
        assert mock_sleep.call_args_list == [call(0.5), call(3.0), call(3.0)]

    def test_rate_limit_code_in_http_error_body(self, credentials, small_page_settings, mock_session, mock_sleep):
        mock_session.get.side_effect = [
            make_response(500, text='{"code":"50011","msg":"Too Many Requests"}'),
            ok_page([make_bill("1")]),
        ]

        fetcher = BillFetcher(credentials, small_page_settings, session=mock_session, sleep=mock_sleep)

        assert len(fetcher.fetch_all()) == 1
        mock_sleep.assert_called_once_with(3.0)

    def test_business_rate_limit_code(self, credentials, small_page_settings, mock_session, mock_sleep):
        mock_session.get.side_effect = [
            make_response(200, {'code': '50011', 'msg': 'Too Many Requests', 'data': []}),
            ok_page([make_bill("1")]),
        ]

        fetcher = BillFetcher(credentials, small_page_settings, session=mock_session, sleep=mock_sleep)

        assert len(fetcher.fetch_all()) == 1
        assert requested_urls(mock_session) == [f"{BASE}?limit=2"] * 2

    def test_retry_ceiling(self, credentials, mock_session, mock_sleep):
        settings = FetchSettings(page_size=2, max_rate_limit_retries=1)
        mock_session.get.return_value = make_response(429, text="")

        fetcher = BillFetcher(credentials, settings, session=mock_session, sleep=mock_sleep)

        with pytest.raises(RateLimitError):
            fetcher.fetch_all()
        assert mock_session.get.call_count == 2
        assert mock_sleep.call_count == 1

    def test_retry_counter_resets_per_page(self, credentials, mock_session, mock_sleep):
        settings = FetchSettings(page_size=2, max_rate_limit_retries=1)
        mock_session.get.side_effect = [
            make_response(429, text=""),
            ok_page([make_bill("4"), make_bill("3")]),
            make_response(429, text=""),
            ok_page([make_bill("2")]),
        ]

        fetcher = BillFetcher(credentials, settings, session=mock_session, sleep=mock_sleep)

        assert len(fetcher.fetch_all()) == 3

    def test_fetch_page_does_not_retry(self, credentials, small_page_settings, mock_session, mock_sleep):
        mock_session.get.return_value = make_response(429, text="")

        fetcher = BillFetcher(credentials, small_page_settings, session=mock_session, sleep=mock_sleep)

        with pytest.raises(RateLimitError):
            fetcher.fetch_page()
        mock_sleep.assert_not_called()


class TestBillFetcherErrors:

    def _fetch(self, credentials, settings, session, sleep):
        return BillFetcher(credentials, settings, session=session, sleep=sleep).fetch_all()

    def test_transport_error_is_not_retried(self, credentials, small_page_settings, mock_session, mock_sleep):
        mock_session.get.side_effect = requests.ConnectionError("connection refused")

        with pytest.raises(TransportError):
            self._fetch(credentials, small_page_settings, mock_session, mock_sleep)
        assert mock_session.get.call_count == 1

    def test_timeout_is_transport_error(self, credentials, small_page_settings, mock_session, mock_sleep):
        mock_session.get.side_effect = requests.Timeout("read timed out")

        with pytest.raises(TransportError):
            self._fetch(credentials, small_page_settings, mock_session, mock_sleep)

    def test_http_error(self, credentials, small_page_settings, mock_session, mock_sleep):
        mock_session.get.return_value = make_response(401, text='{"code":"50113","msg":"Invalid Sign"}')

        with pytest.raises(RemoteHTTPError) as exc_info:
            self._fetch(credentials, small_page_settings, mock_session, mock_sleep)
        assert exc_info.value.status_code == 401
        assert "Invalid Sign" in str(exc_info.value)

    def test_business_error(self, credentials, small_page_settings, mock_session, mock_sleep):
        mock_session.get.return_value = make_response(200, {'code': '51000', 'msg': 'Parameter error', 'data': []})

        with pytest.raises(RemoteBusinessError) as exc_info:
            self._fetch(credentials, small_page_settings, mock_session, mock_sleep)
        assert exc_info.value.code == '51000'
        assert exc_info.value.remote_message == 'Parameter error'

    def test_invalid_json(self, credentials, small_page_settings, mock_session, mock_sleep):
        mock_session.get.return_value = make_response(200, text="<html>gateway</html>")

        with pytest.raises(MalformedResponseError):
            self._fetch(credentials, small_page_settings, mock_session, mock_sleep)

    def test_data_not_a_list(self, credentials, small_page_settings, mock_session, mock_sleep):
        mock_session.get.return_value = make_response(200, {'code': '0', 'msg': '', 'data': {'billId': '1'}})

        with pytest.raises(MalformedResponseError):
            self._fetch(credentials, small_page_settings, mock_session, mock_sleep)

    def test_missing_code(self, credentials, small_page_settings, mock_session, mock_sleep):
        mock_session.get.return_value = make_response(200, {'data': []})

        with pytest.raises(MalformedResponseError):
            self._fetch(credentials, small_page_settings, mock_session, mock_sleep)
