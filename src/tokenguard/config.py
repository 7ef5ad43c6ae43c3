"""Application configuration using pydantic-settings.

Every value can be set through a ``TOKENGUARD_``-prefixed environment variable
or a ``.env`` file in the working directory.
"""

from decimal import Decimal
from functools import lru_cache
from typing import Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="TOKENGUARD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # Node
    # ======================
    rpc_url: str = Field(
        default="https://eth.llamarpc.com", description="EVM JSON-RPC endpoint"
    )
    rpc_timeout: float = Field(
        default=30.0, description="HTTP timeout for each JSON-RPC call (seconds)"
    )
    chain_id: Optional[int] = Field(
        default=None, description="Chain ID for signing (fetched via eth_chainId if unset)"
    )

    # ======================
    # Token / Account
    # ======================
    token_contract_address: str = Field(
        default="", description="ERC20 token contract address"
    )
    sender_address: str = Field(
        default="", description="Address that pays gas and sends tokens"
    )
    private_key: Optional[SecretStr] = Field(
        default=None, description="Hex private key of the sender (never logged)"
    )

    # ======================
    # Fee Safety
    # ======================
    gas_buffer_ratio: Decimal = Field(
        default=Decimal("0.30"), description="Safety margin added to gas estimates (30%)"
    )

    # ======================
    # Confirmation Tracking
    # ======================
    confirmation_attempts: int = Field(
        default=12, description="Receipt polls after the initial check"
    )
    confirmation_interval: float = Field(
        default=5.0, description="Seconds between receipt polls"
    )

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=False, description="Enable debug logging")
    dry_run: bool = Field(
        default=False, description="Use the simulated ledger (no real transactions)"
    )

    @field_validator("gas_buffer_ratio")
    @classmethod
    def _check_buffer_ratio(cls, value: Decimal) -> Decimal:
        if not value.is_finite() or value < 0 or value > 10:
            raise ValueError("gas_buffer_ratio must be between 0 and 10")
        return value

    @field_validator("confirmation_attempts")
    @classmethod
    def _check_attempts(cls, value: int) -> int:
        if value < 0:
            raise ValueError("confirmation_attempts must not be negative")
        return value

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    @property
    def has_signing_key(self) -> bool:
        """Check if a private key is configured."""
        return bool(self.private_key and self.private_key.get_secret_value())

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "dry_run": self.dry_run,
            "rpc_url": self._redact_url(self.rpc_url),
            "rpc_timeout": self.rpc_timeout,
            "chain_id": self.chain_id,
            "token_contract_address": self.token_contract_address or "(not set)",
            "sender_address": self.sender_address or "(not set)",
            "private_key": "***" if self.has_signing_key else "(not set)",
            "gas_buffer_ratio": str(self.gas_buffer_ratio),
            "confirmation": {
                "attempts": self.confirmation_attempts,
                "interval": self.confirmation_interval,
            },
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact credentials and API keys embedded in an RPC URL."""
        if "://" not in url:
            return url

        proto, rest = url.split("://", 1)
        if "@" in rest:
            creds, rest = rest.rsplit("@", 1)
            if ":" in creds:
                user, _ = creds.split(":", 1)
                rest = f"{user}:***@{rest}"
            else:
                rest = f"***@{rest}"

        # Infura/Alchemy style keys live in the last path segment
        host, sep, path = rest.partition("/")
        if sep and path:
            segments = path.split("/")
            if len(segments[-1]) >= 20:
                segments[-1] = "***"
            path = "/".join(segments)
            rest = f"{host}/{path}"

        return f"{proto}://{rest}"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
