"""
Bitcoin and workflow policy constants.
"""

from __future__ import annotations

SATS_PER_BTC = 100_000_000

# Decimal places of one satoshi expressed in BTC
BTC_DECIMALS = 8

# Coinbase outputs become spendable after this many confirmations
COINBASE_MATURITY = 100

# Blocks mined to the funding wallet so that exactly one coinbase reward is mature
FUNDING_BLOCK_COUNT = COINBASE_MATURITY + 1

# Blocks mined after a payment to confirm it
CONFIRMATION_BLOCKS = 1

# How far the lineage resolver walks backwards from the target transaction
LINEAGE_DEPTH = 1

# Bitcoin Core RPC error codes
RPC_WALLET_ERROR = -4
RPC_INVALID_ADDRESS_OR_KEY = -5
RPC_WALLET_ALREADY_LOADED = -35
