"""
Test configuration for txlineage tests.

Provides an in-memory regtest node served over httpx.MockTransport so the
real RPC client, error mapping and Decimal parsing are exercised without a
running bitcoind.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

import bech32
import httpx
import pytest
import pytest_asyncio

from txlineage.amounts import btc_to_sats
from txlineage.config import Settings
from txlineage.constants import COINBASE_MATURITY
from txlineage.rpc import BitcoinCoreRPC

SUBSIDY_SATS = 50 * 100_000_000
PAYMENT_FEE_SATS = 1410


@dataclass
class FakeOutput:
    value: int
    address: str | None
    script_type: str = "witness_v0_keyhash"
    spent: bool = False


@dataclass
class FakeTx:
    txid: str
    vin: list[tuple[str, int] | None]
    vout: list[FakeOutput]
    blockhash: str | None = None
    wallets: set[str] = field(default_factory=set)


class NodeRPCError(Exception):
    def __init__(self, code: int, message: str, status: int = 500):
        self.code = code
        self.message = message
        self.status = status


class FakeRegtestNode:
    """
    Minimal regtest bitcoind: wallets, coinbase maturity, sendtoaddress with
    payment + change outputs, mempool, blocks and verbose transactions.
    """

    def __init__(self, txindex: bool = True, change_first: bool = True):
        self.txindex = txindex
        self.change_first = change_first
        self.reject_auth = False
        self.unreachable = False
        self.drop_from_mempool = False
        self.loaded: list[str] = []
        self.on_disk: set[str] = set()
        self.addresses: dict[str, str] = {}  # address -> wallet
        self.txs: dict[str, FakeTx] = {}
        self.mempool: list[str] = []
        self.blocks: list[str] = [self._hash("genesis")]
        self.block_of_height: dict[str, int] = {self.blocks[0]: 0}
        self.calls: list[tuple[str | None, str, list]] = []
        self._counter = 0

    # helpers

    def _hash(self, seed: str) -> str:
        return hashlib.sha256(seed.encode()).hexdigest()

    def _next(self, prefix: str) -> str:
        self._counter += 1
        return self._hash(f"{prefix}-{self._counter}")

    @property
    def height(self) -> int:
        return len(self.blocks) - 1

    def new_address(self, wallet: str) -> str:
        program = bytes.fromhex(self._next(f"addr-{wallet}"))[:20]
        address = bech32.encode("bcrt", 0, program)
        self.addresses[address] = wallet
        return address

    def add_tx(self, tx: FakeTx) -> FakeTx:
        for out in tx.vout:
            if out.address in self.addresses:
                tx.wallets.add(self.addresses[out.address])
        self.txs[tx.txid] = tx
        return tx

    def mine(self, count: int, address: str) -> list[str]:
        hashes = []
        for _ in range(count):
            block_hash = self._next("block")
            coinbase = FakeTx(
                txid=self._next("coinbase"),
                vin=[None],
                vout=[FakeOutput(SUBSIDY_SATS, address)],
                blockhash=block_hash,
            )
            self.add_tx(coinbase)
            for txid in self.mempool:
                self.txs[txid].blockhash = block_hash
            self.mempool = []
            self.blocks.append(block_hash)
            self.block_of_height[block_hash] = self.height
            hashes.append(block_hash)
        return hashes

    def confirmations(self, tx: FakeTx) -> int:
        if tx.blockhash is None:
            return 0
        return self.height - self.block_of_height[tx.blockhash] + 1

    def spendable(self, wallet: str) -> list[tuple[FakeTx, int]]:
        coins = []
        for tx in self.txs.values():
            for n, out in enumerate(tx.vout):
                if out.spent or self.addresses.get(out.address or "") != wallet:
                    continue
                if tx.vin == [None] and self.confirmations(tx) <= COINBASE_MATURITY:
                    continue
                coins.append((tx, n))
        return coins

    def pay(self, wallet: str, recipients: list[tuple[str, int]]) -> str:
        total = sum(v for _, v in recipients)
        for tx, n in self.spendable(wallet):
            coin = tx.vout[n]
            if coin.value >= total + PAYMENT_FEE_SATS:
                break
        else:
            raise NodeRPCError(-6, "Insufficient funds")

        coin.spent = True
        change = FakeOutput(coin.value - total - PAYMENT_FEE_SATS, self.new_address(wallet))
        payments = [FakeOutput(v, addr) for addr, v in recipients]
        outputs = [change, *payments] if self.change_first else [*payments, change]
        spend = FakeTx(txid=self._next("tx"), vin=[(tx.txid, n)], vout=outputs)
        spend.wallets.add(wallet)
        self.add_tx(spend)
        if not self.drop_from_mempool:
            self.mempool.append(spend.txid)
        return spend.txid

    def verbose_tx(self, tx: FakeTx) -> dict[str, Any]:
        vin = []
        for ref in tx.vin:
            if ref is None:
                vin.append({"coinbase": "51", "sequence": 4294967295})
            else:
                vin.append({"txid": ref[0], "vout": ref[1], "sequence": 4294967293})
        vout = []
        for n, out in enumerate(tx.vout):
            script: dict[str, Any] = {"hex": "00", "type": out.script_type}
            if out.address is not None:
                script["address"] = out.address
            value = Decimal(out.value) / 100_000_000
            vout.append({"value": value, "n": n, "scriptPubKey": script})
        data: dict[str, Any] = {"txid": tx.txid, "hash": tx.txid, "vin": vin, "vout": vout}
        if tx.blockhash is not None:
            data["blockhash"] = tx.blockhash
            data["confirmations"] = self.confirmations(tx)
        return data

    # RPC dispatch

    def dispatch(self, wallet: str | None, method: str, params: list) -> Any:
        self.calls.append((wallet, method, params))
        if wallet is not None and wallet not in self.loaded:
            raise NodeRPCError(-18, "Requested wallet does not exist or is not loaded", 404)

        if method == "getblockchaininfo":
            return {"chain": "regtest", "blocks": self.height, "bestblockhash": self.blocks[-1]}
        if method == "getblockcount":
            return self.height
        if method == "listwallets":
            return list(self.loaded)
        if method == "listwalletdir":
            return {"wallets": [{"name": name} for name in sorted(self.on_disk)]}
        if method == "loadwallet":
            name = params[0]
            if name in self.loaded:
                raise NodeRPCError(-35, f"Wallet \"{name}\" is already loaded.")
            if name not in self.on_disk:
                raise NodeRPCError(-18, "Wallet file verification failed. Path does not exist.")
            self.loaded.append(name)
            return {"name": name, "warning": ""}
        if method == "createwallet":
            name = params[0]
            if name in self.on_disk:
                raise NodeRPCError(-4, "Wallet file verification failed. Database already exists.")
            self.on_disk.add(name)
            self.loaded.append(name)
            return {"name": name, "warning": ""}
        if method == "getnewaddress":
            return self.new_address(self._require_wallet(wallet))
        if method == "generatetoaddress":
            return self.mine(int(params[0]), params[1])
        if method == "sendtoaddress":
            return self.pay(self._require_wallet(wallet), [(params[0], btc_to_sats(params[1]))])
        if method == "send":
            recipients = [(a, btc_to_sats(v)) for entry in params[0] for a, v in entry.items()]
            txid = self.pay(self._require_wallet(wallet), recipients)
            return {"txid": txid, "complete": True}
        if method == "getrawmempool":
            return list(self.mempool)
        if method == "getrawtransaction":
            return self._getrawtransaction(*params)
        if method == "gettransaction":
            tx = self.txs.get(params[0])
            if tx is None or self._require_wallet(wallet) not in tx.wallets:
                raise NodeRPCError(-5, "Invalid or non-wallet transaction id")
            data = {"txid": tx.txid, "confirmations": self.confirmations(tx)}
            if tx.blockhash:
                data["blockhash"] = tx.blockhash
            return data
        if method == "getblockheader":
            if params[0] not in self.block_of_height:
                raise NodeRPCError(-5, "Block not found")
            return {"hash": params[0], "height": self.block_of_height[params[0]]}
        raise NodeRPCError(-32601, "Method not found")

    def _require_wallet(self, wallet: str | None) -> str:
        if wallet is None:
            raise NodeRPCError(-19, "Wallet file not specified")
        return wallet

    def _getrawtransaction(self, txid: str, verbose: bool = False, blockhash: str | None = None):
        tx = self.txs.get(txid)
        if tx is None:
            raise NodeRPCError(-5, "No such mempool or blockchain transaction.")
        if blockhash is not None:
            if tx.blockhash != blockhash:
                raise NodeRPCError(-5, "No such transaction found in the provided block.")
        elif tx.blockhash is not None and not self.txindex:
            raise NodeRPCError(
                -5, "No such mempool transaction. Use -txindex or provide a block hash."
            )
        return self.verbose_tx(tx)

    def handle(self, request: httpx.Request) -> httpx.Response:
        if self.unreachable:
            raise httpx.ConnectError("Connection refused", request=request)
        if self.reject_auth:
            return httpx.Response(401, text="")

        payload = json.loads(request.content)
        path = request.url.path
        wallet = path.split("/wallet/", 1)[1] if "/wallet/" in path else None

        try:
            result = self.dispatch(wallet, payload["method"], payload.get("params", []))
        except NodeRPCError as e:
            error = {"code": e.code, "message": e.message}
            body = {"result": None, "error": error, "id": payload["id"]}
            return httpx.Response(e.status, text=json.dumps(body))
        body = {"result": result, "error": None, "id": payload["id"]}
        # Core emits amounts as JSON numbers
        return httpx.Response(200, text=json.dumps(body, default=float))


@pytest.fixture
def node() -> FakeRegtestNode:
    return FakeRegtestNode()


@pytest_asyncio.fixture
async def rpc(node: FakeRegtestNode):
    client = BitcoinCoreRPC(
        rpc_url="http://127.0.0.1:18443",
        rpc_user="alice",
        rpc_password="password",
        transport=httpx.MockTransport(node.handle),
    )
    yield client
    await client.close()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        bitcoin_rpc_url="http://127.0.0.1:18443",
        bitcoin_rpc_user="alice",
        bitcoin_rpc_password="password",
        report_path=tmp_path / "out.txt",
    )
