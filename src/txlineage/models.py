"""
Core data models.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from txlineage.amounts import format_btc, format_fee

if TYPE_CHECKING:
    from txlineage.address import Address


class NetworkType(str, Enum):
    MAINNET = "mainnet"
    TESTNET = "testnet"
    SIGNET = "signet"
    REGTEST = "regtest"


class ProvisionOutcome(str, Enum):
    """How WalletProvisioner.ensure satisfied its request."""

    ALREADY_LOADED = "already_loaded"
    LOADED = "loaded"
    CREATED = "created"


class OutputRole(str, Enum):
    PAYMENT = "payment"
    CHANGE = "change"
    AMBIGUOUS = "ambiguous"


@dataclass(frozen=True)
class UTXOReference:
    txid: str
    vout: int

    def __post_init__(self) -> None:
        if len(self.txid) != 64 or any(c not in "0123456789abcdefABCDEF" for c in self.txid):
            raise ValueError(f"Invalid txid: {self.txid!r}")
        if self.vout < 0:
            raise ValueError(f"Invalid output index: {self.vout}")

    def __str__(self) -> str:
        return f"{self.txid}:{self.vout}"


@dataclass(frozen=True)
class TransactionOutput:
    n: int
    value: int  # satoshis
    script_type: str
    address: Address | None = None


@dataclass(frozen=True)
class ConfirmedTransaction:
    """
    Decoded transaction as seen by the node.

    Despite the name, blockhash is None while the transaction sits in the
    mempool; the lineage resolver rejects such transactions. Coinbase
    inputs have no previous output and appear as None in ``inputs``.
    """

    txid: str
    inputs: tuple[UTXOReference | None, ...]
    outputs: tuple[TransactionOutput, ...]
    blockhash: str | None = None

    @property
    def is_confirmed(self) -> bool:
        return self.blockhash is not None

    def output(self, vout: int) -> TransactionOutput | None:
        if 0 <= vout < len(self.outputs):
            return self.outputs[vout]
        return None


@dataclass(frozen=True)
class BlockInfo:
    hash: str
    height: int


@dataclass(frozen=True)
class LineageReport:
    """Resolved lineage of a payment. Amounts and fee are in satoshis."""

    txid: str
    funding_address: str
    funding_amount: int
    payment_address: str
    payment_amount: int
    change_address: str
    change_amount: int
    fee: int
    block_height: int
    block_hash: str

    def lines(self) -> list[str]:
        """The ten report lines in artifact order."""
        return [
            self.txid,
            self.funding_address,
            format_btc(self.funding_amount),
            self.payment_address,
            format_btc(self.payment_amount),
            self.change_address,
            format_btc(self.change_amount),
            format_fee(self.fee),
            str(self.block_height),
            self.block_hash,
        ]
