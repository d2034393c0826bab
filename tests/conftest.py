"""
Pytest configuration and shared fixtures for ledger-sync tests
"""

import json
import sys
from pathlib import Path

import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from ledger_sync.datasource.bills import RawBillEvent
from ledger_sync.utils.config import ApiCredentials, FetchSettings


def make_bill(bill_id="1", ts=1700000000000, bal_chg="0", ord_id="", inst_id="BTC-USDT-SWAP",
              bill_type="2", sub_type="1", ccy="USDT", pnl="0", notes=""):
    """Bill object as returned in the bills-archive "data" array"""
    return {
        'billId': str(bill_id),
        'ts': str(ts),
        'type': bill_type,
        'subType': sub_type,
        'pnl': pnl,
        'balChg': str(bal_chg),
        'ccy': ccy,
        'instId': inst_id,
        'ordId': ord_id,
        'notes': notes
    }


def make_event(ts_ms, amount, order_id="", inst_id="BTC-USDT-SWAP", bill_type="2",
               ccy="USDT", bill_id=None):
    """RawBillEvent with a millisecond-epoch timestamp"""
    return RawBillEvent.from_api(make_bill(
        bill_id=bill_id or f"b{ts_ms}",
        ts=ts_ms,
        bal_chg=amount,
        ord_id=order_id,
        inst_id=inst_id,
        bill_type=bill_type,
        ccy=ccy
    ))


def make_response(status_code=200, payload=None, text=None):
    """Mock requests.Response"""
    response = Mock()
    response.status_code = status_code
    response.text = text if text is not None else json.dumps(payload)
    return response


def ok_page(bills):
    return make_response(200, {'code': '0', 'msg': '', 'data': bills})


def ts(seconds, millis=0):
    """UTC datetime at epoch + seconds"""
    return datetime(1970, 1, 1, tzinfo=timezone.utc) + timedelta(seconds=seconds, milliseconds=millis)


@pytest.fixture
def credentials():
    return ApiCredentials(api_key="test-key", secret_key="test-secret", passphrase="test-pass")


@pytest.fixture
def small_page_settings():
    """Fetch settings with two-bill pages; sleeps are mocked in tests"""
    return FetchSettings(page_size=2, page_delay=0.5, rate_limit_cooldown=3.0)


@pytest.fixture
def mock_session():
    return Mock()


@pytest.fixture
def mock_sleep():
    return Mock()


@pytest.fixture
def ledger_path(tmp_path):
    return tmp_path / "data" / "ledger.csv"


# Pytest markers and configuration
def pytest_configure(config):
    """Configure pytest markers"""
    config.addinivalue_line(
        "markers", "unit: mark test as unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as integration test"
    )


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create temporary config directory for testing"""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    return config_dir
