"""
E2E test configuration and fixtures.

These tests need a running regtest bitcoind (docker compose up -d bitcoin)
and are excluded by default through the ``-m 'not docker'`` addopts.
"""

from __future__ import annotations

import os
import socket
from collections.abc import AsyncGenerator
from urllib.parse import urlparse

import pytest
import pytest_asyncio
from loguru import logger

from txlineage.config import Settings
from txlineage.rpc import BitcoinCoreRPC


def pytest_collection_modifyitems(
    config: pytest.Config,
    items: list[pytest.Item],
) -> None:
    """Mark every test in this directory as needing docker."""
    for item in items:
        if "e2e" in item.nodeid.split("/"):
            item.add_marker(pytest.mark.docker)


def is_port_open(host: str, port: int, timeout: float = 1.0) -> bool:
    """Check if a TCP port is open."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.settimeout(timeout)
    try:
        result = sock.connect_ex((host, port))
        return result == 0
    finally:
        sock.close()


@pytest.fixture
def regtest_settings(tmp_path) -> Settings:
    """Settings for the local regtest node from environment or defaults."""
    return Settings(
        bitcoin_rpc_url=os.environ.get("BITCOIN_RPC_URL", "http://127.0.0.1:18443"),
        bitcoin_rpc_user=os.environ.get("BITCOIN_RPC_USER", "alice"),
        bitcoin_rpc_password=os.environ.get("BITCOIN_RPC_PASSWORD", "password"),
        report_path=tmp_path / "out.txt",
    )


@pytest_asyncio.fixture
async def regtest_rpc(regtest_settings: Settings) -> AsyncGenerator[BitcoinCoreRPC, None]:
    url = urlparse(regtest_settings.bitcoin_rpc_url)
    if not is_port_open(url.hostname or "127.0.0.1", url.port or 18443):
        logger.warning(f"Bitcoin Core not accessible at {regtest_settings.bitcoin_rpc_url}")
        pytest.skip("Bitcoin Core regtest node not running")

    rpc = BitcoinCoreRPC(
        rpc_url=regtest_settings.bitcoin_rpc_url,
        rpc_user=regtest_settings.bitcoin_rpc_user,
        rpc_password=regtest_settings.bitcoin_rpc_password,
    )
    yield rpc
    await rpc.close()
