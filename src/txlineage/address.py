"""
Network-tagged Bitcoin address parsing.

Supports native segwit (BIP173 bech32, BIP350 bech32m) and legacy
base58check P2PKH/P2SH addresses. An address parsed for one network is
never silently accepted on another.
"""

from __future__ import annotations

from dataclasses import dataclass

import base58
import bech32

from txlineage.errors import InvalidAddressError, NetworkMismatchError
from txlineage.models import NetworkType

BECH32_CONST = 1
BECH32M_CONST = 0x2BC830A3

SEGWIT_HRP: dict[NetworkType, str] = {
    NetworkType.MAINNET: "bc",
    NetworkType.TESTNET: "tb",
    NetworkType.SIGNET: "tb",
    NetworkType.REGTEST: "bcrt",
}

# (P2PKH, P2SH) version bytes; testnet, signet and regtest share them
BASE58_VERSIONS: dict[NetworkType, tuple[int, int]] = {
    NetworkType.MAINNET: (0x00, 0x05),
    NetworkType.TESTNET: (0x6F, 0xC4),
    NetworkType.SIGNET: (0x6F, 0xC4),
    NetworkType.REGTEST: (0x6F, 0xC4),
}


def _split_bech32(text: str) -> tuple[str, list[int]]:
    if text.lower() != text and text.upper() != text:
        raise InvalidAddressError(f"Mixed case in {text!r}")
    text = text.lower()
    pos = text.rfind("1")
    if pos < 1 or pos + 7 > len(text) or len(text) > 90:
        raise InvalidAddressError(f"Malformed bech32 string {text!r}")
    if not all(c in bech32.CHARSET for c in text[pos + 1 :]):
        raise InvalidAddressError(f"Invalid bech32 data in {text!r}")
    return text[:pos], [bech32.CHARSET.find(c) for c in text[pos + 1 :]]


def decode_bech32(text: str) -> tuple[str, list[int], int]:
    """
    Split a bech32/bech32m string into HRP, data words and checksum constant.

    Raises:
        InvalidAddressError: On bad charset, mixed case, length or checksum
    """
    hrp, data = bech32.bech32_decode(text)
    if hrp is not None:
        return hrp, data, BECH32_CONST

    # bech32 only verifies the BIP173 constant; retry the checksum as bech32m
    hrp, words = _split_bech32(text)
    if bech32.bech32_polymod(bech32.bech32_hrp_expand(hrp) + words) != BECH32M_CONST:
        raise InvalidAddressError(f"Bad bech32 checksum in {text!r}")
    return hrp, words[:-6], BECH32M_CONST


def decode_segwit_address(text: str) -> tuple[str, int, bytes]:
    """
    Decode a segwit address.

    Returns:
        (hrp, witness version, witness program)
    """
    hrp, data, const = decode_bech32(text)
    if not data or data[0] > 16:
        raise InvalidAddressError(f"Invalid witness version in {text!r}")
    witver = data[0]
    decoded = bech32.convertbits(data[1:], 5, 8, False)
    if decoded is None:
        raise InvalidAddressError(f"Invalid witness program in {text!r}")
    program = bytes(decoded)

    if not 2 <= len(program) <= 40:
        raise InvalidAddressError(f"Invalid witness program length in {text!r}")
    if witver == 0 and len(program) not in (20, 32):
        raise InvalidAddressError(f"Invalid v0 witness program length in {text!r}")
    # v0 uses bech32, v1+ uses bech32m (BIP350)
    expected = BECH32_CONST if witver == 0 else BECH32M_CONST
    if const != expected:
        raise InvalidAddressError(f"Wrong checksum variant for witness v{witver} in {text!r}")
    return hrp, witver, program


def base58check_decode(text: str) -> bytes:
    """Decode a base58check string and return the payload without checksum."""
    try:
        return base58.b58decode_check(text)
    except ValueError as e:
        raise InvalidAddressError(f"Invalid base58check address {text!r}: {e}") from e


@dataclass(frozen=True)
class Address:
    """A validated address bound to the network it was parsed for."""

    value: str
    network: NetworkType
    kind: str  # p2pkh, p2sh, witness_v0, witness_v1, ...

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, text: str, network: NetworkType | str) -> Address:
        """
        Parse and validate an address for a network.

        Raises:
            InvalidAddressError: If text is not a valid address on any network
            NetworkMismatchError: If text is valid but for another network
        """
        network = NetworkType(network)
        text = text.strip()

        if text.lower().startswith(tuple(f"{h}1" for h in SEGWIT_HRP.values())):
            hrp, witver, _ = decode_segwit_address(text)
            if hrp != SEGWIT_HRP[network]:
                raise NetworkMismatchError(
                    f"Address {text} (hrp {hrp!r}) is not a {network.value} address"
                )
            return cls(value=text.lower(), network=network, kind=f"witness_v{witver}")

        payload = base58check_decode(text)
        if len(payload) != 21:
            raise InvalidAddressError(f"Invalid base58 address payload length in {text!r}")
        version = payload[0]
        p2pkh, p2sh = BASE58_VERSIONS[network]
        if version == p2pkh:
            return cls(value=text, network=network, kind="p2pkh")
        if version == p2sh:
            return cls(value=text, network=network, kind="p2sh")
        known = {v for pair in BASE58_VERSIONS.values() for v in pair}
        if version in known:
            raise NetworkMismatchError(
                f"Address {text} (version {version:#04x}) is not a {network.value} address"
            )
        raise InvalidAddressError(f"Unknown address version {version:#04x} in {text!r}")
