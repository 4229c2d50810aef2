"""
Exact BTC amount handling.

All amounts inside txlineage are integer satoshis. Values read from the
node arrive as ``Decimal`` (the RPC client parses JSON floats with
``parse_float=Decimal``) and are converted here without ever passing
through a binary float.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from txlineage.constants import BTC_DECIMALS, SATS_PER_BTC


def btc_to_sats(value: Decimal | str | int) -> int:
    """
    Convert a BTC amount to satoshis.

    Args:
        value: Amount in BTC as Decimal, decimal string or integer

    Returns:
        Amount in satoshis

    Raises:
        TypeError: If value is a float
        ValueError: If value is not a number or has sub-satoshi precision
    """
    if isinstance(value, float):
        raise TypeError("BTC amounts must be Decimal, str or int, not float")
    try:
        btc = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except InvalidOperation as e:
        raise ValueError(f"Invalid BTC amount: {value!r}") from e
    if not btc.is_finite():
        raise ValueError(f"Invalid BTC amount: {value!r}")

    sats = btc * SATS_PER_BTC
    if sats != sats.to_integral_value():
        raise ValueError(f"BTC amount {value} has sub-satoshi precision")
    return int(sats)


def sats_to_btc(sats: int) -> Decimal:
    """Satoshis as a BTC Decimal with exactly eight decimal places."""
    return Decimal(sats).scaleb(-BTC_DECIMALS)


def rpc_amount(sats: int) -> str:
    """Amount formatted for RPC parameters ("20.00000000")."""
    return f"{sats_to_btc(sats):.{BTC_DECIMALS}f}"


def format_btc(sats: int) -> str:
    """Plain decimal BTC with trailing zeros trimmed ("50", "29.9999859")."""
    text = f"{sats_to_btc(sats):f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def format_fee(fee_sats: int) -> str:
    """
    Render a fee as the net cost to the payer.

    The fee is negated and printed in scientific notation with two digits
    after the point and an unpadded exponent, e.g. 1410 sats -> "-1.41e-5".
    """
    # Decimal keeps the exponent of a zero, so spell out the float rendering of -0.0
    if fee_sats == 0:
        return "-0.00e0"
    return f"{-sats_to_btc(fee_sats):.2e}"
