from typing import Optional

from treasury_relay.utils.constants import (
    ADDRESS_PATTERN,
    ALIAS_STRIP_PATTERN,
    PLACEHOLDER_USERNAME_LENGTH,
)


def normalize_alias(value: Optional[str]) -> str:
    """Lowercase and keep only [a-z0-9]."""
    if not value:
        return ""
    return ALIAS_STRIP_PATTERN.sub("", str(value).strip().lower())


def is_address_shaped(value: Optional[str]) -> bool:
    return bool(value) and bool(ADDRESS_PATTERN.match(value.strip()))


def placeholder_username(wallet_address: str) -> str:
    """Username used for a wallet that never registered one."""
    return wallet_address.strip()[-PLACEHOLDER_USERNAME_LENGTH:].lower()


def normalize_wallet(value: Optional[str]) -> str:
    """Trim, and lowercase EVM addresses so lookups are case-insensitive."""
    if not value:
        return ""
    value = value.strip()
    if ADDRESS_PATTERN.match(value):
        return value.lower()
    return value
