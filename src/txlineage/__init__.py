"""
txlineage - Bitcoin regtest payment workflow and transaction lineage resolver

Provisions wallets, funds and pays on regtest, then reconstructs where a
payment's funds came from, where they went and what it cost.
"""

__version__ = "0.1.0"

from txlineage.address import Address
from txlineage.config import Settings, get_settings
from txlineage.errors import (
    AmbiguousOutputError,
    LineageError,
    MissingPreviousOutputError,
    NetworkMismatchError,
    NoAddressError,
    NodeAuthError,
    NodeUnavailableError,
    PaymentNotInMempoolError,
    RPCError,
    TransactionNotFoundError,
    TxLineageError,
    UnconfirmedError,
)
from txlineage.lineage import (
    NodeTransactionLookup,
    TransactionLineageResolver,
    TransactionLookup,
    classify_outputs,
)
from txlineage.mining import ChainBootstrapper
from txlineage.models import (
    ConfirmedTransaction,
    LineageReport,
    NetworkType,
    OutputRole,
    ProvisionOutcome,
    TransactionOutput,
    UTXOReference,
)
from txlineage.payment import PaymentExecutor
from txlineage.report import ReportWriter
from txlineage.rpc import BitcoinCoreRPC
from txlineage.wallet import WalletHandle, WalletProvisioner

__all__ = [
    "Address",
    "AmbiguousOutputError",
    "BitcoinCoreRPC",
    "ChainBootstrapper",
    "ConfirmedTransaction",
    "LineageError",
    "LineageReport",
    "MissingPreviousOutputError",
    "NetworkMismatchError",
    "NetworkType",
    "NoAddressError",
    "NodeAuthError",
    "NodeTransactionLookup",
    "NodeUnavailableError",
    "OutputRole",
    "PaymentExecutor",
    "PaymentNotInMempoolError",
    "ProvisionOutcome",
    "RPCError",
    "ReportWriter",
    "Settings",
    "TransactionLineageResolver",
    "TransactionLookup",
    "TransactionNotFoundError",
    "TransactionOutput",
    "TxLineageError",
    "UTXOReference",
    "UnconfirmedError",
    "WalletHandle",
    "WalletProvisioner",
    "classify_outputs",
    "get_settings",
]
