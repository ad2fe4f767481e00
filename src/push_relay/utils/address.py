"""Account address helpers.

Network accounts are 64 hex digits. Wallet UIs show the EVM-style form:
``0x`` followed by the first 40 hex digits.
"""

from __future__ import annotations

import re

ADDRESS_LENGTH = 64

# Reserved address meaning "drop every subscription of this device".
UNSUBSCRIBE_ALL_ADDRESS = "0" * ADDRESS_LENGTH

_ADDRESS_RE = re.compile(r"^[0-9a-fA-F]{64}$")


def normalize_address(address: str) -> str:
    """Case-fold an address for use as an index key."""
    return address.lower()


def is_account_address(address: object) -> bool:
    """Return True if *address* is a 64-digit hex account address."""
    return isinstance(address, str) and bool(_ADDRESS_RE.match(address))


def to_display_address(address: str | None) -> str:
    """Convert a 64-digit account address to its ``0x`` + 40 digit form.

    Values that are not account addresses are returned unchanged.
    """
    if not address:
        return ""
    if is_account_address(address):
        return "0x" + address[:40].lower()
    return address
