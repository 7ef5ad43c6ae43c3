"""Transfer orchestration.

One run walks a fixed sequence of states, each gated by the previous step:

    IDLE -> VALIDATING -> SCALING -> CHECKING_BALANCE -> ESTIMATING
         -> CHECKING_AFFORDABILITY -> SUBMITTING -> SUBMITTED

Any step may end the run as REJECTED (bad input or not affordable) or FAILED
(node/network error). Every run returns a TransferOutcome; nothing is raised
to the caller except cancellation.

The run never waits for mining. Use tokenguard.confirmation for that.
"""

import asyncio
import logging
from typing import Optional

from tokenguard.amounts import (
    format_amount,
    fractional_digits,
    parse_amount,
    to_base_units,
    to_human_units,
)
from tokenguard.errors import (
    ErrorKind,
    EstimationFailedError,
    InvalidAmountError,
    MetadataUnavailableError,
)
from tokenguard.fees import FeeEstimator, Insufficient, check_affordability
from tokenguard.ledger.base import LedgerClient, LedgerError
from tokenguard.metadata import TokenMetadataCache
from tokenguard.models import (
    Failed,
    ProgressEvent,
    Rejected,
    Submitted,
    TransferOutcome,
    TransferRequest,
    TransferState,
)
from tokenguard.validation import validate_address

logger = logging.getLogger(__name__)

NATIVE_DECIMALS = 18


class TransferOrchestrator:
    """Runs fee-safe ERC20 transfers against one token contract.

    Example:
        orchestrator = TransferOrchestrator(client, token_address)
        outcome = await orchestrator.run(
            TransferRequest(recipient="0x...", human_amount="2.5", sender_address="0x...")
        )
    """

    def __init__(
        self,
        ledger_client: LedgerClient,
        contract_address: str,
        metadata_cache: Optional[TokenMetadataCache] = None,
        fee_estimator: Optional[FeeEstimator] = None,
    ):
        self.ledger_client = ledger_client
        self.contract_address = contract_address
        self.metadata_cache = metadata_cache or TokenMetadataCache()
        self.fee_estimator = fee_estimator or FeeEstimator()

    @staticmethod
    def _publish(progress: Optional[asyncio.Queue], event: ProgressEvent) -> None:
        if progress is None:
            return
        try:
            progress.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning(f"Progress channel full, dropped {event.state.value} event")

    def _emit(
        self,
        progress: Optional[asyncio.Queue],
        state: TransferState,
        message: str,
        **detail,
    ) -> None:
        """Log a state transition and publish it on the progress channel."""
        logger.info(f"[{state.value}] {message}")
        self._publish(progress, ProgressEvent(state=state, message=message, detail=detail))

    def _reject(
        self,
        progress: Optional[asyncio.Queue],
        reason: ErrorKind,
        message: str,
        shortfall: Optional[int] = None,
    ) -> Rejected:
        detail = {"reason": reason.value}
        if shortfall is not None:
            detail["shortfall"] = shortfall
        self._emit(progress, TransferState.REJECTED, message, **detail)
        return Rejected(reason=reason, message=message, shortfall=shortfall)

    def _fail(self, progress: Optional[asyncio.Queue], kind: ErrorKind, detail: str) -> Failed:
        logger.error(f"Transfer failed ({kind.value}): {detail}")
        self._publish(
            progress,
            ProgressEvent(state=TransferState.FAILED, message=detail, detail={"error_kind": kind.value}),
        )
        return Failed(error_kind=kind, detail=detail)

    async def run(
        self,
        request: TransferRequest,
        progress: Optional[asyncio.Queue] = None,
    ) -> TransferOutcome:
        """Execute one transfer attempt.

        Args:
            request: Recipient, human amount and sender
            progress: Optional queue receiving a ProgressEvent per transition

        Returns:
            Submitted, Rejected or Failed
        """
        client = self.ledger_client

        # 1. Validate input
        self._emit(progress, TransferState.VALIDATING, "Validating transfer request")

        try:
            amount = parse_amount(request.human_amount)
        except InvalidAmountError as e:
            return self._reject(progress, ErrorKind.INVALID_INPUT, e.message)

        if amount == 0:
            return self._reject(progress, ErrorKind.INVALID_AMOUNT, "Amount must be greater than zero")

        valid, error = validate_address(request.recipient)
        if not valid:
            return self._reject(progress, ErrorKind.INVALID_INPUT, f"Recipient: {error}")

        valid, error = validate_address(request.sender_address)
        if not valid:
            return self._reject(progress, ErrorKind.INVALID_INPUT, f"Sender: {error}")

        recipient = request.recipient.strip()
        sender = request.sender_address.strip()

        # 2. Scale to base units
        self._emit(progress, TransferState.SCALING, "Preparing transfer...")

        try:
            metadata = await self.metadata_cache.get_metadata(client, self.contract_address)
        except MetadataUnavailableError as e:
            return self._fail(progress, ErrorKind.METADATA_UNAVAILABLE, e.message)

        if fractional_digits(amount) > metadata.decimals:
            return self._reject(
                progress,
                ErrorKind.INVALID_AMOUNT,
                f"{metadata.symbol} supports at most {metadata.decimals} decimal places",
            )

        # Rejects amounts beyond uint256
        try:
            scaled_amount = to_base_units(amount, metadata.decimals)
        except InvalidAmountError as e:
            return self._reject(progress, ErrorKind.INVALID_AMOUNT, e.message)
        except ValueError as e:
            return self._reject(progress, ErrorKind.INVALID_AMOUNT, str(e))

        # 3. Fail fast when there is nothing to pay gas with
        self._emit(
            progress,
            TransferState.CHECKING_BALANCE,
            "Checking gas balance",
            amount=scaled_amount,
            symbol=metadata.symbol,
        )

        try:
            native_balance = await client.get_native_balance(sender)
        except LedgerError as e:
            return self._fail(progress, ErrorKind.QUERY_FAILED, f"Native balance query failed: {e}")

        if native_balance == 0:
            return self._reject(progress, ErrorKind.NO_GAS_FUNDS, "Insufficient native balance for gas fees")

        # 4. Estimate gas for the exact call
        self._emit(progress, TransferState.ESTIMATING, "Estimating gas")

        try:
            quote = await self.fee_estimator.estimate(
                client, sender, self.contract_address, recipient, scaled_amount
            )
        except EstimationFailedError as e:
            return self._fail(progress, ErrorKind.ESTIMATION_FAILED, e.message)

        # 5. Affordability
        self._emit(
            progress,
            TransferState.CHECKING_AFFORDABILITY,
            "Checking fee affordability",
            gas=quote.buffered_estimate,
            gas_price=quote.unit_price,
            total_cost=quote.total_cost,
        )

        affordability = check_affordability(native_balance, quote)
        if isinstance(affordability, Insufficient):
            needed = format_amount(to_human_units(quote.total_cost, NATIVE_DECIMALS))
            return self._reject(
                progress,
                ErrorKind.INSUFFICIENT_FUNDS,
                f"Insufficient native balance for gas. Needed: {needed}",
                shortfall=affordability.shortfall,
            )

        # 6. Sign and broadcast
        self._emit(progress, TransferState.SUBMITTING, "Sending transaction...")

        try:
            tx_hash = await client.sign_and_submit(
                sender,
                self.contract_address,
                "transfer",
                [recipient, scaled_amount],
                quote.buffered_estimate,
                quote.unit_price,
                0,
            )
        except LedgerError as e:
            return self._fail(progress, ErrorKind.SUBMISSION_FAILED, str(e))

        # 7. Done; mining is tracked out of band
        self._emit(progress, TransferState.SUBMITTED, "Transaction sent!", tx_hash=tx_hash)
        return Submitted(tx_hash=tx_hash, amount=scaled_amount, quote=quote)
