"""
Test Suite Configuration
"""
import pytest

from woo_accounting.config.settings import (
    AccountingSettings,
    MonitoringSettings,
    SecuritySettings,
    Settings,
    WooCommerceSettings,
)
from woo_accounting.ingestion.client import WooCommerceClient
from tests.helpers import FakeWooCommerce


@pytest.fixture
def wc_settings() -> WooCommerceSettings:
    """Configured upstream settings with instant retries"""
    return WooCommerceSettings(
        base_url="https://shop.test",
        consumer_key="ck_test",
        consumer_secret="cs_test",
        retry_backoff_seconds=0,
    )


@pytest.fixture
def fake_wc() -> FakeWooCommerce:
    """Empty in-memory upstream"""
    return FakeWooCommerce()


@pytest.fixture
def wc_client(wc_settings, fake_wc) -> WooCommerceClient:
    return WooCommerceClient(wc_settings, http_client=fake_wc.http_client())


@pytest.fixture
def test_settings(wc_settings) -> Settings:
    """Create test settings"""
    return Settings(
        app_env="testing",
        debug=True,
        woocommerce=wc_settings,
        accounting=AccountingSettings(),
        security=SecuritySettings(api_token=None),
        monitoring=MonitoringSettings(log_format="text"),
    )
