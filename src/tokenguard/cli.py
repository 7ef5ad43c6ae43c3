"""Command-line interface.

Usage:
    tokenguard info
    tokenguard balance 0xHolder
    tokenguard transfer 0xRecipient 2.5 [--wait]
    tokenguard confirm 0xTxHash [--attempts 12] [--interval 5]

Node, token, sender and key come from TOKENGUARD_* environment variables or
a .env file (see tokenguard.config).
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Optional

from tokenguard.amounts import format_amount, to_human_units
from tokenguard.config import Settings, get_settings
from tokenguard.confirmation import Confirmed
from tokenguard.errors import TokenGuardError
from tokenguard.models import ProgressEvent, Submitted, TransferState
from tokenguard.service import TokenService

# Colors for output
GREEN = "\033[92m"
RED = "\033[91m"
YELLOW = "\033[93m"
RESET = "\033[0m"


def print_status(message: str, success: bool = True) -> None:
    """Print a status line with color."""
    color = GREEN if success else RED
    print(f"{color}{message}{RESET}")


def configure_logging(settings: Settings) -> None:
    log_level = logging.DEBUG if settings.debug else logging.WARNING
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


async def _print_progress(progress: asyncio.Queue) -> None:
    while True:
        event: ProgressEvent = await progress.get()
        print(f"{YELLOW}... {event.message}{RESET}")
        if event.state.is_terminal:
            return


async def cmd_info(service: TokenService, settings: Settings, args: argparse.Namespace) -> int:
    info = settings.get_safe_dict()
    metadata = await service.token_metadata()
    info["token"] = {"symbol": metadata.symbol, "decimals": metadata.decimals}
    print(json.dumps(info, indent=2))
    return 0


async def cmd_balance(service: TokenService, settings: Settings, args: argparse.Namespace) -> int:
    result = await service.check_balance(args.address, places=args.places)
    if not result.success:
        print_status(f"Balance check error: {result.error}", success=False)
        return 1

    print_status(f"{format_amount(result.balance, result.symbol)}")
    return 0


async def cmd_confirm(service: TokenService, settings: Settings, args: argparse.Namespace) -> int:
    def on_attempt(attempt: int) -> None:
        print(f"{YELLOW}Checking transaction... Attempt {attempt}{RESET}")

    result = await service.await_confirmation(
        args.tx_hash,
        max_attempts=args.attempts,
        interval=args.interval,
        on_attempt=on_attempt,
    )

    if isinstance(result, Confirmed):
        if result.succeeded:
            print_status(f"Transaction mined in block {result.receipt.block_number}")
            return 0
        print_status("Transaction failed (out of gas or reverted)", success=False)
        return 1

    print_status(
        f"Transaction not found after {result.attempts} attempts. It may still be pending.",
        success=False,
    )
    return 2


async def cmd_transfer(service: TokenService, settings: Settings, args: argparse.Namespace) -> int:
    progress: asyncio.Queue = asyncio.Queue()
    printer = asyncio.create_task(_print_progress(progress))

    try:
        outcome = await service.transfer(args.recipient, args.amount, progress=progress)
    except BaseException:
        printer.cancel()
        raise
    await printer

    if not isinstance(outcome, Submitted):
        if outcome.status == TransferState.REJECTED:
            print_status(f"Transfer rejected ({outcome.reason.value}): {outcome.message}", False)
        else:
            print_status(f"Transfer error ({outcome.error_kind.value}): {outcome.detail}", False)
        return 1

    fee = format_amount(to_human_units(outcome.quote.total_cost, 18))
    print_status(f"Transaction sent! {outcome.tx_hash}")
    print(f"Gas limit {outcome.quote.buffered_estimate} @ {outcome.quote.unit_price} wei (max fee {fee})")

    if args.wait:
        args.tx_hash = outcome.tx_hash
        return await cmd_confirm(service, settings, args)
    return 0


COMMANDS = {
    "info": cmd_info,
    "balance": cmd_balance,
    "transfer": cmd_transfer,
    "confirm": cmd_confirm,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tokenguard",
        description="Fee-safe ERC20 balance checks and transfers",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("info", help="Show configuration and token metadata")

    balance = sub.add_parser("balance", help="Check a token balance")
    balance.add_argument("address", help="Holder address")
    balance.add_argument("--places", type=int, default=None, help="Round to N decimal places")

    transfer = sub.add_parser("transfer", help="Send tokens from the configured sender")
    transfer.add_argument("recipient", help="Recipient address")
    transfer.add_argument("amount", help="Amount in token units, e.g. 2.5")
    transfer.add_argument("--wait", action="store_true", help="Wait for the transaction to be mined")
    transfer.add_argument("--attempts", type=int, default=None, help="Receipt polls when waiting")
    transfer.add_argument("--interval", type=float, default=None, help="Seconds between polls")

    confirm = sub.add_parser("confirm", help="Wait for a transaction receipt")
    confirm.add_argument("tx_hash", help="Transaction hash")
    confirm.add_argument("--attempts", type=int, default=None, help="Receipt polls")
    confirm.add_argument("--interval", type=float, default=None, help="Seconds between polls")

    return parser


async def run(args: argparse.Namespace, settings: Settings) -> int:
    async with TokenService.from_settings(settings) as service:
        try:
            return await COMMANDS[args.command](service, settings, args)
        except TokenGuardError as e:
            print_status(f"Error ({e.kind.value}): {e.message}", success=False)
            return 1


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(settings)

    if not settings.token_contract_address:
        print_status("TOKENGUARD_TOKEN_CONTRACT_ADDRESS is not set", success=False)
        return 2

    try:
        return asyncio.run(run(args, settings))
    except KeyboardInterrupt:
        print_status("Interrupted (a broadcast transaction cannot be cancelled)", success=False)
        return 130


if __name__ == "__main__":
    sys.exit(main())
