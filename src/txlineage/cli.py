"""
txlineage CLI - run the regtest payment workflow and resolve transaction lineage.
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path

import httpx
import typer
from loguru import logger
from pydantic import ValidationError

from txlineage.amounts import btc_to_sats
from txlineage.config import Settings, get_settings
from txlineage.errors import TxLineageError
from txlineage.workflow import create_rpc, resolve_to_file, run_workflow

app = typer.Typer(
    name="txlineage",
    help="Bitcoin regtest payment workflow and transaction lineage resolver",
    add_completion=False,
)

FATAL_ERRORS = (TxLineageError, OSError, httpx.HTTPError)


def setup_logging(level: str = "INFO") -> None:
    """Configure loguru logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )


def build_settings(
    rpc_url: str | None,
    rpc_user: str | None,
    rpc_password: str | None,
    network: str | None,
    log_level: str | None,
    **extra: object,
) -> Settings:
    overrides = {
        "bitcoin_rpc_url": rpc_url,
        "bitcoin_rpc_user": rpc_user,
        "bitcoin_rpc_password": rpc_password,
        "network": network,
        "log_level": log_level,
        **extra,
    }
    try:
        return get_settings(**{k: v for k, v in overrides.items() if v is not None})
    except ValidationError as e:
        setup_logging()
        logger.error(f"Invalid configuration: {e}")
        raise typer.Exit(1) from e


@app.command()
def run(
    rpc_url: str | None = typer.Option(None, "--rpc-url", envvar="BITCOIN_RPC_URL"),
    rpc_user: str | None = typer.Option(None, "--rpc-user", envvar="BITCOIN_RPC_USER"),
    rpc_password: str | None = typer.Option(
        None, "--rpc-password", envvar="BITCOIN_RPC_PASSWORD"
    ),
    network: str | None = typer.Option(None, "--network", "-n", envvar="NETWORK"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Report file path"),
    log_level: str | None = typer.Option(None, "--log-level", "-l", envvar="LOG_LEVEL"),
) -> None:
    """Provision wallets, mine, pay, confirm, resolve and write the report."""
    settings = build_settings(
        rpc_url, rpc_user, rpc_password, network, log_level, report_path=output
    )
    setup_logging(settings.log_level)

    try:
        result = asyncio.run(run_workflow(settings))
    except FATAL_ERRORS as e:
        logger.error(f"Workflow failed: {e}")
        raise typer.Exit(1) from e

    print(result.report_path)


@app.command()
def resolve(
    txid: str = typer.Argument(..., help="Confirmed transaction id"),
    expected_payment: str = typer.Option(
        ..., "--expected-payment", "-p", help="Intended payment amount in BTC"
    ),
    output: Path | None = typer.Option(None, "--output", "-o", help="Report file path"),
    rpc_url: str | None = typer.Option(None, "--rpc-url", envvar="BITCOIN_RPC_URL"),
    rpc_user: str | None = typer.Option(None, "--rpc-user", envvar="BITCOIN_RPC_USER"),
    rpc_password: str | None = typer.Option(
        None, "--rpc-password", envvar="BITCOIN_RPC_PASSWORD"
    ),
    network: str | None = typer.Option(None, "--network", "-n", envvar="NETWORK"),
    log_level: str | None = typer.Option(None, "--log-level", "-l", envvar="LOG_LEVEL"),
) -> None:
    """Resolve the lineage of an already confirmed payment."""
    settings = build_settings(rpc_url, rpc_user, rpc_password, network, log_level)
    setup_logging(settings.log_level)

    try:
        amount = btc_to_sats(expected_payment)
    except ValueError as e:
        logger.error(f"Invalid --expected-payment: {e}")
        raise typer.Exit(1) from e

    destination = output or settings.report_path
    try:
        result = asyncio.run(resolve_to_file(settings, txid, amount, destination))
    except FATAL_ERRORS as e:
        logger.error(f"Resolution failed: {e}")
        raise typer.Exit(1) from e

    print(result.report_path)


@app.command()
def info(
    rpc_url: str | None = typer.Option(None, "--rpc-url", envvar="BITCOIN_RPC_URL"),
    rpc_user: str | None = typer.Option(None, "--rpc-user", envvar="BITCOIN_RPC_USER"),
    rpc_password: str | None = typer.Option(
        None, "--rpc-password", envvar="BITCOIN_RPC_PASSWORD"
    ),
    log_level: str | None = typer.Option(None, "--log-level", "-l", envvar="LOG_LEVEL"),
) -> None:
    """Print getblockchaininfo from the node."""
    settings = build_settings(rpc_url, rpc_user, rpc_password, None, log_level)
    setup_logging(settings.log_level)

    try:
        data = asyncio.run(_blockchain_info(settings))
    except FATAL_ERRORS as e:
        logger.error(f"Cannot query node: {e}")
        raise typer.Exit(1) from e

    print(json.dumps(data, indent=2, default=str))


async def _blockchain_info(settings: Settings) -> dict:
    rpc = create_rpc(settings)
    try:
        return await rpc.call("getblockchaininfo")
    finally:
        await rpc.close()


def main() -> None:
    app()


if __name__ == "__main__":
    main()
