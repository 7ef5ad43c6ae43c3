"""Token service: the entry point for presentation layers.

A TokenService binds one ledger client, one token contract and one sender
account. It replaces ambient globals with an explicit context object; the
metadata cache it holds is the only state that outlives a single call.
"""

import asyncio
import logging
from decimal import Decimal
from typing import Optional

from tokenguard.amounts import AmountInput
from tokenguard.balance import get_formatted_balance
from tokenguard.config import Settings, get_settings
from tokenguard.confirmation import ConfirmationResult, await_confirmation
from tokenguard.errors import ErrorKind, TokenGuardError
from tokenguard.fees import DEFAULT_BUFFER_RATIO, FeeEstimator, RatioInput
from tokenguard.ledger.base import LedgerClient
from tokenguard.ledger.factory import get_ledger_client
from tokenguard.metadata import TokenMetadata, TokenMetadataCache
from tokenguard.models import BalanceResult, TransferOutcome, TransferRequest
from tokenguard.transfer import TransferOrchestrator
from tokenguard.validation import validate_address

logger = logging.getLogger(__name__)


class TokenService:
    """Balance checks and fee-safe transfers for one token and sender.

    Example:
        async with TokenService.from_settings() as service:
            result = await service.check_balance("0x...")
            outcome = await service.transfer("0x...", "2.5")
    """

    def __init__(
        self,
        ledger_client: LedgerClient,
        contract_address: str,
        sender_address: str,
        metadata_cache: Optional[TokenMetadataCache] = None,
        buffer_ratio: RatioInput = DEFAULT_BUFFER_RATIO,
        confirmation_attempts: int = 12,
        confirmation_interval: float = 5.0,
    ):
        self.ledger_client = ledger_client
        self.contract_address = contract_address
        self.sender_address = sender_address
        self.metadata_cache = metadata_cache or TokenMetadataCache()
        self.confirmation_attempts = confirmation_attempts
        self.confirmation_interval = confirmation_interval
        self.orchestrator = TransferOrchestrator(
            ledger_client,
            contract_address,
            metadata_cache=self.metadata_cache,
            fee_estimator=FeeEstimator(buffer_ratio),
        )

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        ledger_client: Optional[LedgerClient] = None,
    ) -> "TokenService":
        """Build a service from configuration."""
        settings = settings or get_settings()
        return cls(
            ledger_client=ledger_client or get_ledger_client(settings),
            contract_address=settings.token_contract_address,
            sender_address=settings.sender_address,
            buffer_ratio=settings.gas_buffer_ratio,
            confirmation_attempts=settings.confirmation_attempts,
            confirmation_interval=settings.confirmation_interval,
        )

    async def token_metadata(self) -> TokenMetadata:
        """Get (cached) symbol and decimals of the bound token."""
        return await self.metadata_cache.get_metadata(self.ledger_client, self.contract_address)

    async def check_balance(self, address: str, places: Optional[int] = None) -> BalanceResult:
        """Check an address's token balance.

        Errors are returned in the result rather than raised.
        """
        if not address or not address.strip():
            return BalanceResult(
                address=address or "",
                error_kind=ErrorKind.INVALID_INPUT,
                error="Please enter an address to check",
            )

        valid, error = validate_address(address)
        if not valid:
            return BalanceResult(address=address, error_kind=ErrorKind.INVALID_ADDRESS, error=error)

        logger.info(f"Checking balance for {address}")
        try:
            metadata = await self.token_metadata()
            balance = await get_formatted_balance(
                self.ledger_client, self.contract_address, address, metadata, places
            )
        except TokenGuardError as e:
            return BalanceResult(address=address, error_kind=e.kind, error=e.message)

        return BalanceResult(address=address, balance=balance, symbol=metadata.symbol)

    async def transfer(
        self,
        recipient: str,
        human_amount: AmountInput,
        progress: Optional[asyncio.Queue] = None,
    ) -> TransferOutcome:
        """Send ``human_amount`` tokens from the bound sender to ``recipient``.

        Returns once the transaction is broadcast (or refused); see
        await_confirmation for mining.
        """
        amount_text = str(human_amount) if isinstance(human_amount, (int, Decimal)) else human_amount
        request = TransferRequest(
            recipient=recipient,
            human_amount=amount_text,
            sender_address=self.sender_address,
        )
        return await self.orchestrator.run(request, progress)

    async def await_confirmation(
        self,
        tx_hash: str,
        max_attempts: Optional[int] = None,
        interval: Optional[float] = None,
        on_attempt=None,
    ) -> ConfirmationResult:
        """Poll for a receipt (opt-in, bounded)."""
        return await await_confirmation(
            self.ledger_client,
            tx_hash,
            max_attempts=self.confirmation_attempts if max_attempts is None else max_attempts,
            interval=self.confirmation_interval if interval is None else interval,
            on_attempt=on_attempt,
        )

    def replace_contract(self, contract_address: str) -> None:
        """Bind a different token contract, discarding the old metadata."""
        self.metadata_cache.invalidate(self.contract_address)
        self.contract_address = contract_address
        self.orchestrator.contract_address = contract_address

    async def close(self) -> None:
        await self.ledger_client.close()

    async def __aenter__(self) -> "TokenService":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False
