"""
Block generation for regtest funding and confirmation.
"""

from __future__ import annotations

from loguru import logger

from txlineage.address import Address
from txlineage.constants import COINBASE_MATURITY
from txlineage.errors import MiningError
from txlineage.wallet import WalletHandle


class ChainBootstrapper:
    """Mines blocks with rewards credited to a given address. No retries."""

    async def fund(self, handle: WalletHandle, address: Address, block_count: int) -> list[str]:
        """
        Mine ``block_count`` blocks paying ``address``.

        To make a coinbase reward spendable, ``block_count`` must exceed
        COINBASE_MATURITY; smaller counts are allowed (confirmations) but
        warned about when used to fund.

        Returns:
            Hashes of the mined blocks, oldest first

        Raises:
            ValueError: If block_count < 1
            MiningError: If the node did not return one hash per block
        """
        if block_count < 1:
            raise ValueError(f"block_count must be positive, got {block_count}")

        hashes = await handle.rpc.generate_to_address(block_count, address)
        if not isinstance(hashes, list) or len(hashes) != block_count:
            got = len(hashes) if isinstance(hashes, list) else hashes
            logger.error(f"generatetoaddress returned {got!r}, expected {block_count} hashes")
            raise MiningError(f"Requested {block_count} blocks, node returned {got!r}")

        logger.info(f"Mined {block_count} block(s) to {address} ({handle.name})")
        return hashes

    async def fund_spendable(
        self, handle: WalletHandle, address: Address, block_count: int
    ) -> list[str]:
        """Like fund(), but warns when the count leaves no mature coinbase."""
        if block_count <= COINBASE_MATURITY:
            logger.warning(
                f"Mining {block_count} blocks does not exceed coinbase maturity "
                f"({COINBASE_MATURITY}); rewards will not be spendable"
            )
        return await self.fund(handle, address, block_count)
