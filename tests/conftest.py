"""Pytest configuration and fixtures."""

import os

import pytest

# Set test environment before settings are loaded
os.environ["TOKENGUARD_ENVIRONMENT"] = "test"
os.environ["TOKENGUARD_DRY_RUN"] = "true"
os.environ["TOKENGUARD_DEBUG"] = "false"

from tokenguard.config import get_settings
from tokenguard.ledger.simulated import SimulatedLedgerClient
from tokenguard.metadata import TokenMetadataCache
from tokenguard.service import TokenService
from tests.constants import GAS_ESTIMATE, GAS_PRICE, SENDER, TOKEN


@pytest.fixture(autouse=True)
def reset_settings():
    """Reload settings for every test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def ledger() -> SimulatedLedgerClient:
    """Simulated node with a funded sender (100 tokens, 1 ETH)."""
    client = SimulatedLedgerClient(
        symbol="TKN",
        decimals=18,
        gas_estimate=GAS_ESTIMATE,
        gas_price=GAS_PRICE,
    )
    client.set_token_balance(SENDER, 100 * 10**18)
    client.set_native_balance(SENDER, 10**18)
    return client


@pytest.fixture
def metadata_cache() -> TokenMetadataCache:
    return TokenMetadataCache()


@pytest.fixture
def service(ledger, metadata_cache) -> TokenService:
    return TokenService(
        ledger_client=ledger,
        contract_address=TOKEN,
        sender_address=SENDER,
        metadata_cache=metadata_cache,
        confirmation_attempts=3,
        confirmation_interval=0,
    )
