"""
Identity allocation for registering peers.

Peer ids are opaque 16-character uppercase hex tokens. Display names
default to a process-wide "Anonymous N" sequence.
"""

import itertools
import logging
import re
import secrets

logger = logging.getLogger(__name__)

ID_BITS = 64
ID_WIDTH = ID_BITS // 4
DEFAULT_ADDRESS = "127.0.0.1"

# Never reset while the process runs; names are not reused after a peer leaves
_anonymous_counter = itertools.count(1)


def normalize_address(ip: str | None) -> str:
    """Collapse loopback and IPv4-mapped forms to a plain address."""
    if not ip:
        return DEFAULT_ADDRESS
    ip = ip.strip()
    if not ip or ip == "::1":
        return DEFAULT_ADDRESS
    if ip.startswith("::ffff:"):
        return ip[len("::ffff:"):]
    return ip


def address_to_number(ip: str | None) -> int:
    """Numeric projection of an address: its first 15 digits, or 1."""
    digits = re.sub(r"\D", "", ip or "")
    if not digits:
        return 1
    return int(digits[:15]) or 1


class IdentityAllocator:
    """Generates peer ids and default display names."""

    def allocate(self, address_hint: str | None = None) -> str:
        """
        Return a fresh peer id.

        A 64-bit random value is mixed with the address projection so
        peers behind different addresses draw from shifted sequences.
        Uniqueness is not checked here; see PeerDirectory.register.
        """
        value = secrets.randbits(ID_BITS) ^ address_to_number(address_hint)
        value &= (1 << ID_BITS) - 1
        return f"{value:0{ID_WIDTH}X}"

    def next_anonymous_name(self) -> str:
        return f"Anonymous {next(_anonymous_counter)}"
