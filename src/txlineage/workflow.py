"""
End-to-end regtest payment workflow.

provision -> fund -> pay -> confirm -> resolve -> write. Each step relies
on the previous one having completed, so they run strictly in order and
the report is only written once resolution has fully succeeded.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from txlineage.config import Settings
from txlineage.lineage import NodeTransactionLookup, TransactionLineageResolver
from txlineage.mining import ChainBootstrapper
from txlineage.models import LineageReport
from txlineage.payment import PaymentExecutor
from txlineage.report import ReportWriter
from txlineage.rpc import BitcoinCoreRPC
from txlineage.wallet import WalletProvisioner


@dataclass(frozen=True)
class WorkflowResult:
    report: LineageReport
    report_path: Path


def create_rpc(settings: Settings, **kwargs) -> BitcoinCoreRPC:
    return BitcoinCoreRPC(
        rpc_url=settings.bitcoin_rpc_url,
        rpc_user=settings.bitcoin_rpc_user,
        rpc_password=settings.bitcoin_rpc_password,
        timeout=settings.rpc_timeout,
        **kwargs,
    )


async def run_workflow(settings: Settings, rpc: BitcoinCoreRPC | None = None) -> WorkflowResult:
    """
    Run the full payment workflow against the configured node.

    A client passed in is left open; one created here is closed on exit.
    """
    owned = rpc is None
    rpc = rpc or create_rpc(settings)
    try:
        info = await rpc.get_blockchain_info()
        logger.info(f"Connected to {info.get('chain')} node at height {info.get('blocks')}")

        provisioner = WalletProvisioner(rpc)
        miner = await provisioner.ensure(settings.miner_wallet)
        trader = await provisioner.ensure(settings.trader_wallet)

        bootstrapper = ChainBootstrapper()
        miner_address = await miner.new_address(settings.network)
        await bootstrapper.fund_spendable(miner, miner_address, settings.funding_blocks)

        trader_address = await trader.new_address(settings.network)
        executor = PaymentExecutor(rpc, settings.network, bootstrapper)
        txid = await executor.pay(
            miner, trader_address, settings.payment_sats, reward_address=miner_address
        )

        lookup = NodeTransactionLookup(rpc, settings.network, hint_wallets=[miner.rpc, trader.rpc])
        resolver = TransactionLineageResolver(rpc, settings.network, lookup)
        report = await resolver.resolve(txid, settings.payment_sats)

        path = ReportWriter().write(report, settings.report_path)
        return WorkflowResult(report=report, report_path=path)
    finally:
        if owned:
            await rpc.close()


async def resolve_to_file(
    settings: Settings,
    txid: str,
    expected_payment: int,
    destination: Path,
    rpc: BitcoinCoreRPC | None = None,
) -> WorkflowResult:
    """Resolve an already confirmed transaction and write its report."""
    owned = rpc is None
    rpc = rpc or create_rpc(settings)
    try:
        hints = [rpc.wallet(name) for name in await rpc.list_wallets()]
        lookup = NodeTransactionLookup(rpc, settings.network, hint_wallets=hints)
        report = await TransactionLineageResolver(rpc, settings.network, lookup).resolve(
            txid, expected_payment
        )
        path = ReportWriter().write(report, destination)
        return WorkflowResult(report=report, report_path=path)
    finally:
        if owned:
            await rpc.close()
