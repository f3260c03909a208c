import re


class PaymentStatus:
    COMPLETED = "completed"
    WITHDRAWN = "withdrawn"


# Native EVM address: 0x followed by 20 bytes of hex
ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")

# Characters kept when normalizing aliases and usernames
ALIAS_STRIP_PATTERN = re.compile(r"[^a-z0-9]")

# Placeholder usernames are the tail of the wallet address
PLACEHOLDER_USERNAME_LENGTH = 8

# Gas for a plain native-token transfer
NATIVE_TRANSFER_GAS = 21000
