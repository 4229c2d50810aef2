"""
Exception hierarchy.

Node errors are fatal and never retried. Lineage errors name the invariant
that failed so the caller can report it verbatim.
"""

from __future__ import annotations


class TxLineageError(Exception):
    """Base class for all errors raised by txlineage."""


# Node access


class NodeError(TxLineageError):
    """The Bitcoin Core node could not serve a request."""


class NodeUnavailableError(NodeError):
    """Connection to the RPC endpoint failed or timed out."""


class NodeAuthError(NodeError):
    """The RPC endpoint rejected our credentials."""


class RPCError(NodeError):
    """Bitcoin Core answered with a JSON-RPC error object."""

    def __init__(self, code: int, message: str, method: str = "") -> None:
        self.code = code
        self.message = message
        self.method = method
        prefix = f"{method}: " if method else ""
        super().__init__(f"{prefix}RPC error {code}: {message}")


# Addresses


class AddressError(TxLineageError, ValueError):
    pass


class InvalidAddressError(AddressError):
    """String is not a well-formed address (bad charset, length or checksum)."""


class NetworkMismatchError(AddressError):
    """Address is valid but belongs to a different network."""


# Workflow invariants


class WorkflowError(TxLineageError):
    pass


class MiningError(WorkflowError):
    """Block generation returned an unexpected result."""


class PaymentNotInMempoolError(WorkflowError):
    """A freshly issued payment is not visible in the node's mempool."""

    def __init__(self, txid: str) -> None:
        self.txid = txid
        super().__init__(f"Payment {txid} not found in mempool after broadcast")


# Lineage resolution


class LineageError(TxLineageError):
    """Transaction lineage could not be resolved."""


class TransactionNotFoundError(LineageError):
    def __init__(self, txid: str) -> None:
        self.txid = txid
        super().__init__(f"Transaction {txid} not known to the node")


class UnconfirmedError(LineageError):
    def __init__(self, txid: str) -> None:
        self.txid = txid
        super().__init__(f"Transaction {txid} has no confirming block")


class MissingPreviousOutputError(LineageError):
    def __init__(self, txid: str, vout: int | None, reason: str) -> None:
        self.txid = txid
        self.vout = vout
        outpoint = f"{txid}:{vout}" if vout is not None else txid
        super().__init__(f"Previous output {outpoint} unavailable: {reason}")


class NoAddressError(LineageError):
    def __init__(self, role: str, txid: str, vout: int) -> None:
        self.role = role
        self.txid = txid
        self.vout = vout
        super().__init__(f"{role} output {txid}:{vout} has no standard address")


class AmbiguousOutputError(LineageError):
    """Payment and change outputs cannot be told apart."""
