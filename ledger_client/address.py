"""
Ledger Client - Address format contract.

Accepted addresses: fixed prefix, fixed total length, lowercase
alphanumerics. Checked before any network call.
"""

from typing import Any

from core.constants import ADDRESS_CHARSET, ADDRESS_LENGTH, ADDRESS_PREFIX
from core.exceptions import AddressFormatError

_ALLOWED = frozenset(ADDRESS_CHARSET)


def is_valid_address(address: Any) -> bool:
    """Check the address format without raising."""
    if not isinstance(address, str):
        return False
    if not address.startswith(ADDRESS_PREFIX):
        return False
    if len(address) != ADDRESS_LENGTH:
        return False
    return all(ch in _ALLOWED for ch in address)


def validate_address(address: Any) -> str:
    """
    Validate and return the address.

    Raises:
        AddressFormatError: If prefix, length or charset is wrong
    """
    if not isinstance(address, str) or not address:
        raise AddressFormatError("Address must be a non-empty string", address=address)
    if not address.startswith(ADDRESS_PREFIX):
        raise AddressFormatError(
            f"Address must start with '{ADDRESS_PREFIX}'", address=address
        )
    if len(address) != ADDRESS_LENGTH:
        raise AddressFormatError(
            f"Address must be {ADDRESS_LENGTH} characters, got {len(address)}",
            address=address,
        )
    if not all(ch in _ALLOWED for ch in address):
        raise AddressFormatError(
            "Address contains characters outside [a-z0-9]", address=address
        )
    return address


def shorten(address: str, keep: int = 10) -> str:
    """Log-friendly form: aleo1abcde...wxyz."""
    if len(address) <= keep + 6:
        return address
    return f"{address[:keep]}...{address[-4:]}"
