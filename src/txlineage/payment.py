"""
Payment issuance and confirmation.
"""

from __future__ import annotations

from typing import Any

from loguru import logger

from txlineage.address import Address
from txlineage.amounts import format_btc, rpc_amount
from txlineage.constants import CONFIRMATION_BLOCKS
from txlineage.errors import PaymentNotInMempoolError, WorkflowError
from txlineage.mining import ChainBootstrapper
from txlineage.models import NetworkType
from txlineage.rpc import BitcoinCoreRPC
from txlineage.wallet import WalletHandle


class PaymentExecutor:
    """
    Sends a payment from a wallet, checks the mempool, then mines one
    confirming block.
    """

    def __init__(
        self,
        rpc: BitcoinCoreRPC,
        network: NetworkType,
        bootstrapper: ChainBootstrapper | None = None,
    ):
        self.rpc = rpc
        self.network = network
        self.bootstrapper = bootstrapper or ChainBootstrapper()

    async def pay(
        self,
        from_handle: WalletHandle,
        to_address: Address,
        amount: int,
        reward_address: Address | None = None,
    ) -> str:
        """
        Pay ``amount`` satoshis to ``to_address`` and confirm it.

        Fees use the node's default estimation. The confirming block reward
        goes to ``reward_address``, or a fresh address of the paying wallet.

        Returns:
            Transaction id of the payment

        Raises:
            ValueError: If amount is not positive
            PaymentNotInMempoolError: If the txid is not in the mempool after sending
        """
        if amount <= 0:
            raise ValueError(f"Payment amount must be positive, got {amount} sats")

        txid = await from_handle.rpc.send_to_address(to_address, amount)
        logger.info(
            f"Sent {format_btc(amount)} BTC from {from_handle.name} to {to_address}: {txid}"
        )

        await self.ensure_in_mempool(txid)
        await self.confirm(from_handle, reward_address)
        return txid

    async def send(self, from_handle: WalletHandle, outputs: dict[Address, int]) -> str:
        """
        Pay several addresses at once via the ``send`` RPC.

        ``send`` has no typed wrapper on the client, so it goes through the
        generic call(). The wallet must report the transaction as complete.

        Raises:
            WorkflowError: If the wallet could not fully sign and broadcast
        """
        if not outputs:
            raise ValueError("send requires at least one output")
        recipients = [{str(addr): rpc_amount(sats)} for addr, sats in outputs.items()]
        result: dict[str, Any] = await from_handle.rpc.call(
            "send", [recipients, None, "unset", None, {}]
        )
        if not result.get("complete"):
            logger.error(f"send from {from_handle.name} incomplete: {result}")
            raise WorkflowError(f"Wallet {from_handle.name} could not complete send")
        txid = result["txid"]
        logger.info(f"Sent to {len(outputs)} recipient(s) from {from_handle.name}: {txid}")
        return txid

    async def ensure_in_mempool(self, txid: str) -> None:
        mempool = await self.rpc.get_raw_mempool()
        if txid not in mempool:
            logger.error(f"Payment {txid} missing from mempool ({len(mempool)} entries)")
            raise PaymentNotInMempoolError(txid)
        logger.debug(f"Payment {txid} visible in mempool")

    async def confirm(
        self, from_handle: WalletHandle, reward_address: Address | None = None
    ) -> list[str]:
        if reward_address is None:
            reward_address = await from_handle.new_address(self.network)
        return await self.bootstrapper.fund(from_handle, reward_address, CONFIRMATION_BLOCKS)
