"""
Transaction lineage resolution.

A decoded transaction lists ordered inputs and outputs but says nothing
about which output is the payment and which is change, nor where its
funds came from. The resolver recovers those roles by walking back to the
previous transaction of the first input, labelling outputs by the
expected payment value, and pulling the confirming block from the node.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Protocol

from loguru import logger

from txlineage.address import Address
from txlineage.amounts import btc_to_sats, format_btc
from txlineage.constants import LINEAGE_DEPTH, RPC_INVALID_ADDRESS_OR_KEY
from txlineage.errors import (
    AmbiguousOutputError,
    LineageError,
    MissingPreviousOutputError,
    NoAddressError,
    RPCError,
    TransactionNotFoundError,
    UnconfirmedError,
)
from txlineage.models import (
    BlockInfo,
    ConfirmedTransaction,
    LineageReport,
    NetworkType,
    OutputRole,
    TransactionOutput,
    UTXOReference,
)
from txlineage.rpc import BitcoinCoreRPC


class TransactionLookup(Protocol):
    """Maps a txid to its decoded transaction, or None if the node has none."""

    async def get(self, txid: str) -> ConfirmedTransaction | None: ...


def parse_transaction(data: dict[str, Any], network: NetworkType) -> ConfirmedTransaction:
    """
    Build a ConfirmedTransaction from verbose getrawtransaction output.

    Output values must already be Decimal (the RPC client parses floats
    that way). Outputs without a standard address keep ``address=None``.
    """
    inputs: list[UTXOReference | None] = []
    for vin in data.get("vin", []):
        if "coinbase" in vin:
            inputs.append(None)
        else:
            inputs.append(UTXOReference(txid=vin["txid"], vout=int(vin["vout"])))

    outputs = []
    for i, vout in enumerate(data.get("vout", [])):
        script = vout.get("scriptPubKey", {})
        text = script.get("address")
        outputs.append(
            TransactionOutput(
                n=int(vout.get("n", i)),
                value=btc_to_sats(vout["value"]),
                script_type=script.get("type", "unknown"),
                address=Address.parse(text, network) if text else None,
            )
        )

    return ConfirmedTransaction(
        txid=data["txid"],
        inputs=tuple(inputs),
        outputs=tuple(outputs),
        blockhash=data.get("blockhash"),
    )


class NodeTransactionLookup:
    """
    TransactionLookup backed by getrawtransaction.

    Nodes running without -txindex only serve confirmed transactions when
    given the containing block, so on a miss each hint wallet is asked for
    the transaction's blockhash via gettransaction and the lookup retried.
    """

    def __init__(
        self,
        rpc: BitcoinCoreRPC,
        network: NetworkType,
        hint_wallets: Sequence[BitcoinCoreRPC] = (),
    ):
        self.rpc = rpc
        self.network = network
        self.hint_wallets = list(hint_wallets)

    async def get(self, txid: str) -> ConfirmedTransaction | None:
        data = await self._fetch(txid)
        if data is None:
            blockhash = await self._blockhash_hint(txid)
            if blockhash is not None:
                data = await self._fetch(txid, blockhash)
        if data is None:
            logger.debug(f"Transaction {txid} not found")
            return None
        return parse_transaction(data, self.network)

    async def _fetch(self, txid: str, blockhash: str | None = None) -> dict[str, Any] | None:
        try:
            return await self.rpc.get_raw_transaction(txid, True, blockhash)
        except RPCError as e:
            if e.code == RPC_INVALID_ADDRESS_OR_KEY:
                return None
            raise

    async def _blockhash_hint(self, txid: str) -> str | None:
        for wallet in self.hint_wallets:
            try:
                wtx = await wallet.get_transaction(txid)
            except RPCError as e:
                if e.code == RPC_INVALID_ADDRESS_OR_KEY:
                    continue
                raise
            if wtx.get("blockhash"):
                return wtx["blockhash"]
        return None


def classify_outputs(
    outputs: Sequence[TransactionOutput], expected_payment: int
) -> tuple[OutputRole, ...]:
    """
    Label each output by value.

    The output worth exactly ``expected_payment`` is the payment and every
    other output is change. When several outputs are worth that amount
    none of them can be told apart, and all are AMBIGUOUS.
    """
    matches = sum(1 for out in outputs if out.value == expected_payment)
    if matches > 1:
        return tuple(OutputRole.AMBIGUOUS for _ in outputs)
    return tuple(
        OutputRole.PAYMENT if out.value == expected_payment else OutputRole.CHANGE
        for out in outputs
    )


class TransactionLineageResolver:
    """
    Reconstructs funding, payment, change, fee and confirming block of a
    confirmed single-payment transaction.
    """

    def __init__(
        self,
        rpc: BitcoinCoreRPC,
        network: NetworkType,
        lookup: TransactionLookup | None = None,
    ):
        self.rpc = rpc
        self.network = network
        self.lookup = lookup or NodeTransactionLookup(rpc, network)

    async def resolve(self, txid: str, expected_payment: int) -> LineageReport:
        """
        Resolve the lineage of ``txid``.

        Args:
            txid: Confirmed payment transaction
            expected_payment: Intended payment amount in satoshis

        Raises:
            TransactionNotFoundError: Node does not know the transaction
            UnconfirmedError: Transaction has no confirming block
            MissingPreviousOutputError: Funding output cannot be fetched
            NoAddressError: Funding, payment or change output has no address
            AmbiguousOutputError: Payment and change cannot be classified
            LineageError: Outputs exceed the funding amount
        """
        tx = await self.lookup.get(txid)
        if tx is None:
            raise TransactionNotFoundError(txid)
        if not tx.is_confirmed:
            logger.error(f"Cannot resolve {txid}: not confirmed")
            raise UnconfirmedError(txid)

        hops = await self.trace_funding(tx, LINEAGE_DEPTH)
        funding_ref, funding = hops[-1]
        payment, change = self._split_outputs(tx, expected_payment)

        funding_address = self._require_address(funding, "funding", funding_ref.txid)
        payment_address = self._require_address(payment, "payment", tx.txid)
        change_address = self._require_address(change, "change", tx.txid)

        fee = funding.value - (payment.value + change.value)
        if fee < 0:
            raise LineageError(
                f"Outputs of {txid} ({format_btc(payment.value + change.value)} BTC) exceed "
                f"funding {funding_ref} ({format_btc(funding.value)} BTC)"
            )

        block = await self.get_block(tx.blockhash)

        report = LineageReport(
            txid=tx.txid,
            funding_address=str(funding_address),
            funding_amount=funding.value,
            payment_address=str(payment_address),
            payment_amount=payment.value,
            change_address=str(change_address),
            change_amount=change.value,
            fee=fee,
            block_height=block.height,
            block_hash=block.hash,
        )
        logger.info(
            f"Resolved {txid}: paid {format_btc(payment.value)} BTC, "
            f"fee {fee} sats, block {block.height}"
        )
        return report

    async def trace_funding(
        self, tx: ConfirmedTransaction, depth: int = LINEAGE_DEPTH
    ) -> list[tuple[UTXOReference, TransactionOutput]]:
        """
        Follow first inputs backwards ``depth`` hops.

        Returns:
            One (outpoint, output) pair per hop, nearest first

        Raises:
            MissingPreviousOutputError: On a coinbase input or an unknown
                previous transaction or output index
        """
        if depth < 1:
            raise ValueError(f"depth must be at least 1, got {depth}")
        if not tx.inputs:
            raise MissingPreviousOutputError(tx.txid, None, "transaction has no inputs")
        if len(tx.inputs) > 1:
            logger.warning(
                f"{tx.txid} has {len(tx.inputs)} inputs; only the first is traced"
            )

        ref = tx.inputs[0]
        if ref is None:
            raise MissingPreviousOutputError(tx.txid, None, "coinbase input has no previous output")

        prev = await self.lookup.get(ref.txid)
        if prev is None:
            raise MissingPreviousOutputError(ref.txid, ref.vout, "previous transaction not found")
        output = prev.output(ref.vout)
        if output is None:
            raise MissingPreviousOutputError(
                ref.txid, ref.vout, f"transaction has only {len(prev.outputs)} outputs"
            )

        hops = [(ref, output)]
        if depth > 1:
            hops.extend(await self.trace_funding(prev, depth - 1))
        return hops

    async def get_block(self, blockhash: str) -> BlockInfo:
        header = await self.rpc.get_block_header(blockhash)
        return BlockInfo(hash=header["hash"], height=int(header["height"]))

    def _split_outputs(
        self, tx: ConfirmedTransaction, expected_payment: int
    ) -> tuple[TransactionOutput, TransactionOutput]:
        if len(tx.outputs) != 2:
            raise AmbiguousOutputError(
                f"{tx.txid} has {len(tx.outputs)} outputs, expected payment and change"
            )
        roles = classify_outputs(tx.outputs, expected_payment)
        if OutputRole.AMBIGUOUS in roles:
            raise AmbiguousOutputError(
                f"Both outputs of {tx.txid} are worth {format_btc(expected_payment)} BTC; "
                "cannot tell payment from change"
            )
        if roles.count(OutputRole.PAYMENT) != 1:
            raise AmbiguousOutputError(
                f"No output of {tx.txid} pays the expected {format_btc(expected_payment)} BTC"
            )
        payment = tx.outputs[roles.index(OutputRole.PAYMENT)]
        change = tx.outputs[roles.index(OutputRole.CHANGE)]
        return payment, change

    @staticmethod
    def _require_address(output: TransactionOutput, role: str, txid: str) -> Address:
        if output.address is None:
            logger.error(f"{role} output {txid}:{output.n} ({output.script_type}) has no address")
            raise NoAddressError(role, txid, output.n)
        return output.address
