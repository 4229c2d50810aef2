"""
Configuration management using pydantic-settings.
"""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from txlineage.amounts import btc_to_sats
from txlineage.constants import COINBASE_MATURITY, FUNDING_BLOCK_COUNT
from txlineage.models import NetworkType


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False
    )

    bitcoin_rpc_url: str = "http://127.0.0.1:18443"
    bitcoin_rpc_user: str = "alice"
    bitcoin_rpc_password: str = "password"
    network: NetworkType = NetworkType.REGTEST
    rpc_timeout: float = Field(default=30.0, gt=0)

    miner_wallet: str = Field(default="Miner", min_length=1)
    trader_wallet: str = Field(default="Trader", min_length=1)
    payment_amount: Decimal = Field(default=Decimal("20"), gt=0, description="BTC")
    funding_blocks: int = Field(default=FUNDING_BLOCK_COUNT, gt=COINBASE_MATURITY)

    report_path: Path = Path("out.txt")
    log_level: str = "INFO"

    @field_validator("payment_amount")
    @classmethod
    def validate_payment_precision(cls, v: Decimal) -> Decimal:
        btc_to_sats(v)
        return v

    @property
    def payment_sats(self) -> int:
        return btc_to_sats(self.payment_amount)


def get_settings(**overrides: object) -> Settings:
    return Settings(**overrides)
