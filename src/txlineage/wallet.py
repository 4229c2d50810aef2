"""
Wallet provisioning.

Wallets are found by asking the node what it has (listwallets,
listwalletdir) before acting, so the normal path never depends on error
strings. Races between the check and the action are settled by RPC error
code.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from loguru import logger

from txlineage.address import Address
from txlineage.constants import RPC_WALLET_ALREADY_LOADED, RPC_WALLET_ERROR
from txlineage.errors import RPCError
from txlineage.models import NetworkType, ProvisionOutcome
from txlineage.rpc import BitcoinCoreRPC


@dataclass(frozen=True)
class WalletHandle:
    """A loaded wallet and the RPC endpoint scoped to it."""

    name: str
    rpc: BitcoinCoreRPC = field(compare=False)
    outcome: ProvisionOutcome = field(default=ProvisionOutcome.ALREADY_LOADED, compare=False)

    @property
    def endpoint(self) -> str:
        return self.rpc.endpoint

    async def new_address(
        self, network: NetworkType | str, address_type: str | None = None
    ) -> Address:
        """
        Ask the wallet for a fresh receive address.

        Raises:
            NetworkMismatchError: If the node hands out an address for another network
        """
        text = await self.rpc.get_new_address(address_type=address_type)
        return Address.parse(text, network)


class WalletProvisioner:
    """Ensures named wallets exist and are loaded on the node."""

    def __init__(self, rpc: BitcoinCoreRPC):
        self.rpc = rpc

    async def ensure(self, name: str) -> WalletHandle:
        """
        Load or create wallet ``name`` and return a handle bound to it.

        Calling this repeatedly with the same name is safe and yields equal
        handles sharing the same scoped endpoint.

        Raises:
            NodeUnavailableError, NodeAuthError: Node unreachable or credentials rejected
            RPCError: Any RPC failure other than "already loaded/exists"
        """
        outcome = await self._provision(name)
        logger.info(f"Wallet {name!r}: {outcome.value}")
        return WalletHandle(name=name, rpc=self.rpc.wallet(name), outcome=outcome)

    async def _provision(self, name: str) -> ProvisionOutcome:
        if name in await self.rpc.list_wallets():
            return ProvisionOutcome.ALREADY_LOADED

        if name in await self.rpc.list_wallet_dir():
            return await self._load(name)

        try:
            await self.rpc.create_wallet(name)
        except RPCError as e:
            if e.code == RPC_WALLET_ALREADY_LOADED:
                return ProvisionOutcome.ALREADY_LOADED
            if e.code != RPC_WALLET_ERROR:
                raise
            # Created on disk by someone else since listwalletdir
            logger.debug(f"createwallet {name!r} reported existing wallet, loading it")
            return await self._load(name)
        return ProvisionOutcome.CREATED

    async def _load(self, name: str) -> ProvisionOutcome:
        try:
            await self.rpc.load_wallet(name)
        except RPCError as e:
            if e.code == RPC_WALLET_ALREADY_LOADED:
                return ProvisionOutcome.ALREADY_LOADED
            raise
        return ProvisionOutcome.LOADED
