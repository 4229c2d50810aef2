"""
Bitcoin Core JSON-RPC client.

One ``httpx.AsyncClient`` per node; wallet-scoped endpoints created with
``wallet(name)`` share it and talk to ``<url>/wallet/<name>``.
"""

from __future__ import annotations

import json
from decimal import Decimal
from typing import Any
from urllib.parse import quote

import httpx
from loguru import logger

from txlineage.address import Address
from txlineage.amounts import rpc_amount
from txlineage.errors import NodeAuthError, NodeError, NodeUnavailableError, RPCError

# Timeout for regular RPC calls (seconds)
DEFAULT_RPC_TIMEOUT = 30.0


class BitcoinCoreRPC:
    """
    Thin async wrapper over Bitcoin Core's JSON-RPC interface.

    Floats in responses are parsed as Decimal so that amounts never lose
    precision. RPC errors surface as RPCError with Core's numeric code.
    """

    def __init__(
        self,
        rpc_url: str = "http://127.0.0.1:18443",
        rpc_user: str = "rpcuser",
        rpc_password: str = "rpcpassword",
        timeout: float = DEFAULT_RPC_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
        *,
        wallet_name: str | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.rpc_url = rpc_url.rstrip("/")
        self.wallet_name = wallet_name
        # Wallet-scoped endpoints borrow the node client and never close it
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(
            timeout=timeout, auth=(rpc_user, rpc_password), transport=transport
        )
        self._request_id = 0
        self._wallets: dict[str, BitcoinCoreRPC] = {}

    @property
    def endpoint(self) -> str:
        if self.wallet_name is None:
            return self.rpc_url
        return f"{self.rpc_url}/wallet/{quote(self.wallet_name, safe='')}"

    def wallet(self, name: str) -> BitcoinCoreRPC:
        """Return the endpoint scoped to wallet ``name`` (cached per name)."""
        if self.wallet_name is not None:
            raise ValueError(f"Endpoint is already scoped to wallet {self.wallet_name!r}")
        scoped = self._wallets.get(name)
        if scoped is None:
            scoped = BitcoinCoreRPC(self.rpc_url, wallet_name=name, client=self.client)
            self._wallets[name] = scoped
        return scoped

    async def call(self, method: str, params: list | None = None) -> Any:
        """
        Make an RPC call to Bitcoin Core.

        Args:
            method: RPC method name
            params: Method parameters

        Returns:
            RPC result

        Raises:
            RPCError: When Core returns an error object
            NodeAuthError: On HTTP 401/403
            NodeUnavailableError: On connection/timeout errors
        """
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params or [],
        }
        logger.debug(f"RPC -> {method} {params or []} ({self.wallet_name or 'node'})")

        try:
            response = await self.client.post(self.endpoint, json=payload)
        except httpx.TimeoutException as e:
            logger.error(f"RPC call timed out: {method} - {e}")
            raise NodeUnavailableError(f"RPC call {method} timed out: {e}") from e
        except httpx.TransportError as e:
            logger.error(f"RPC call failed: {method} - {e}")
            raise NodeUnavailableError(f"Cannot reach node at {self.rpc_url}: {e}") from e

        if response.status_code in (401, 403):
            raise NodeAuthError(f"Node at {self.rpc_url} rejected RPC credentials")

        # Core reports RPC errors as HTTP 404/500 with a JSON body
        try:
            data = json.loads(response.text, parse_float=Decimal)
        except ValueError as e:
            raise NodeError(
                f"{method}: HTTP {response.status_code} with non-JSON body: {response.text[:200]!r}"
            ) from e

        if not isinstance(data, dict):
            raise NodeError(f"{method}: unexpected RPC response {data!r}")

        if data.get("error"):
            error_info = data["error"]
            raise RPCError(
                int(error_info.get("code", 0)),
                str(error_info.get("message", error_info)),
                method,
            )

        if response.status_code != 200:
            raise NodeError(f"{method}: HTTP {response.status_code}")

        return data.get("result")

    async def get_blockchain_info(self) -> dict[str, Any]:
        return await self.call("getblockchaininfo")

    async def list_wallets(self) -> list[str]:
        """Names of wallets currently loaded by the node."""
        return await self.call("listwallets")

    async def list_wallet_dir(self) -> list[str]:
        """Names of wallets present in the node's wallet directory."""
        result = await self.call("listwalletdir")
        return [w["name"] for w in result.get("wallets", [])]

    async def load_wallet(self, name: str) -> dict[str, Any]:
        return await self.call("loadwallet", [name])

    async def create_wallet(self, name: str) -> dict[str, Any]:
        return await self.call("createwallet", [name])

    async def get_new_address(self, label: str = "", address_type: str | None = None) -> str:
        params: list[Any] = [label]
        if address_type:
            params.append(address_type)
        return await self.call("getnewaddress", params)

    async def generate_to_address(self, nblocks: int, address: Address | str) -> list[str]:
        return await self.call("generatetoaddress", [nblocks, str(address)])

    async def send_to_address(self, address: Address | str, amount_sats: int) -> str:
        return await self.call("sendtoaddress", [str(address), rpc_amount(amount_sats)])

    async def get_raw_mempool(self) -> list[str]:
        return await self.call("getrawmempool")

    async def get_raw_transaction(
        self, txid: str, verbose: bool = True, blockhash: str | None = None
    ) -> dict[str, Any]:
        params: list[Any] = [txid, verbose]
        if blockhash:
            params.append(blockhash)
        return await self.call("getrawtransaction", params)

    async def get_transaction(self, txid: str) -> dict[str, Any]:
        """Wallet view of a transaction (gettransaction)."""
        return await self.call("gettransaction", [txid])

    async def get_block_header(self, blockhash: str) -> dict[str, Any]:
        return await self.call("getblockheader", [blockhash])

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()
