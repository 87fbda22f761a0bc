"""Pydantic Settings configuration models.

Config hierarchy (lowest to highest priority):
1. Pydantic defaults (in code below)
2. .env file (loaded by Pydantic Settings)
3. Environment variables (e.g., ESCROW_FEE__PERCENTAGE_BPS=600)

These values only seed the ledger at construction. Fee rate and fee
collector are changed afterwards through the administrator-only
operations on the running service, not by editing config.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from escrow_ledger.fees import MAX_FEE_BPS

VALID_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})
VALID_LOG_FORMATS = frozenset({"console", "json"})
VALID_STORAGE_BACKENDS = frozenset({"memory", "sqlite"})


class FeeConfig(BaseModel):
    """Initial platform fee policy."""

    percentage_bps: int = Field(default=500, ge=0, le=MAX_FEE_BPS)
    collector: str = ""


class IssuerConfig(BaseModel):
    """Trusted order issuer.

    ``public_key`` is the hex-encoded Ed25519 verify key. The same hex
    string is the administrator identity.
    """

    public_key: str = ""

    @field_validator("public_key")
    @classmethod
    def validate_public_key(cls, v: str) -> str:
        v = v.strip().lower()
        if not v:
            return v
        if v.startswith("0x"):
            v = v[2:]
        try:
            raw = bytes.fromhex(v)
        except ValueError as exc:
            raise ValueError("public_key must be hex-encoded") from exc
        if len(raw) != 32:
            raise ValueError(f"public_key must be 32 bytes, got {len(raw)}")
        return v


class EscrowConfig(BaseSettings):
    """Top-level escrow ledger configuration.

    Env var examples:
        ESCROW_LOG_LEVEL=DEBUG
        ESCROW_FEE__PERCENTAGE_BPS=500
        ESCROW_FEE__COLLECTOR=fee-wallet
        ESCROW_ISSUER__PUBLIC_KEY=3b6a27bc...
        ESCROW_ASSET=USDC
    """

    model_config = SettingsConfigDict(
        env_prefix="ESCROW_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: str = "INFO"
    log_format: str = "console"
    fee: FeeConfig = FeeConfig()
    issuer: IssuerConfig = IssuerConfig()
    asset: str = "USDC"
    custody_account: str = "escrow"
    storage: str = "memory"
    db_path: str = "data/escrow.db"
    db_busy_timeout_ms: int = 5000

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        v = v.upper()
        if v not in VALID_LOG_LEVELS:
            raise ValueError(
                f"log_level must be one of {sorted(VALID_LOG_LEVELS)}, got {v}"
            )
        return v

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.lower()
        if v not in VALID_LOG_FORMATS:
            raise ValueError(
                f"log_format must be one of {sorted(VALID_LOG_FORMATS)}, got {v}"
            )
        return v

    @field_validator("storage")
    @classmethod
    def validate_storage(cls, v: str) -> str:
        v = v.lower()
        if v not in VALID_STORAGE_BACKENDS:
            raise ValueError(
                f"storage must be one of {sorted(VALID_STORAGE_BACKENDS)}, got {v}"
            )
        return v

    @property
    def database_url(self) -> str:
        """Async SQLAlchemy URL for the configured SQLite file."""
        return f"sqlite+aiosqlite:///{self.db_path}"
