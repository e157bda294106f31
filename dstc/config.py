"""Node settings read from environment variables."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass

__all__ = [
    "Settings",
    "load_settings",
    "ENV_NODE_ID",
    "ENV_MAX_NODES",
    "ENV_MCAST_GROUP_ADDR",
    "ENV_MCAST_GROUP_PORT",
    "ENV_MCAST_IFACE_ADDR",
    "ENV_MCAST_TTL",
    "ENV_CONTROL_LISTEN_IFACE",
    "ENV_CONTROL_LISTEN_PORT",
    "ENV_LOG_LEVEL",
    "DEFAULT_MAX_NODES",
    "DEFAULT_MCAST_GROUP_ADDRESS",
    "DEFAULT_MCAST_GROUP_PORT",
    "DEFAULT_MCAST_TTL",
    "DEFAULT_LOG_LEVEL",
]

ENV_NODE_ID = "DSTC_NODE_ID"
ENV_MAX_NODES = "DSTC_MAX_NODES"
ENV_MCAST_GROUP_ADDR = "DSTC_MCAST_GROUP_ADDR"
ENV_MCAST_GROUP_PORT = "DSTC_MCAST_GROUP_PORT"
ENV_MCAST_IFACE_ADDR = "DSTC_MCAST_IFACE_ADDR"
ENV_MCAST_TTL = "DSTC_MCAST_TTL"
ENV_CONTROL_LISTEN_IFACE = "DSTC_CONTROL_LISTEN_IFACE"
ENV_CONTROL_LISTEN_PORT = "DSTC_CONTROL_LISTEN_PORT"
ENV_LOG_LEVEL = "DSTC_LOG_LEVEL"

DEFAULT_MAX_NODES = 32
DEFAULT_MCAST_GROUP_ADDRESS = "239.40.41.42"
DEFAULT_MCAST_GROUP_PORT = 4723
DEFAULT_MCAST_TTL = 0
DEFAULT_LOG_LEVEL = 2  # errors only

_NODE_ID_MASK = 0xFFFFFFFF
_WHITESPACE = " \t\n\v\f\r"

# Level 0 silences logging; 5 ("comment") sits between info and debug.
_LOG_LEVELS = {
    0: logging.CRITICAL + 10,
    1: logging.CRITICAL,
    2: logging.ERROR,
    3: logging.WARNING,
    4: logging.INFO,
    5: (logging.INFO + logging.DEBUG) // 2,
    6: logging.DEBUG,
}


def _split_sign(text: str) -> tuple[int, str]:
    text = text.lstrip(_WHITESPACE)
    if text[:1] in ("+", "-"):
        return (-1 if text[0] == "-" else 1), text[1:]
    return 1, text


def _leading_int(text: str, base: int) -> int | None:
    digits = "0123456789abcdef"[:base]
    taken = []
    for char in text:
        if char.lower() not in digits:
            break
        taken.append(char)
    return int("".join(taken), base) if taken else None


def _atoi(text: str) -> int:
    """Decimal integer prefix of ``text``; 0 if there is none."""
    sign, rest = _split_sign(text)
    value = _leading_int(rest, 10)
    return 0 if value is None else sign * value


def _strtoul(text: str) -> int:
    """Unsigned integer prefix of ``text`` in base 16, 8 or 10 by its prefix."""
    sign, rest = _split_sign(text)
    if rest[:2].lower() == "0x":
        value = _leading_int(rest[2:], 16)
        if value is None:
            value = 0  # "0x" with no hex digits reads as the leading zero
    elif rest[:1] == "0":
        value = _leading_int(rest, 8) or 0
    else:
        value = _leading_int(rest, 10) or 0
    return sign * value


@dataclass(frozen=True)
class Settings:
    """Parameters for setting up a node."""

    node_id: int = 0
    max_nodes: int = DEFAULT_MAX_NODES
    multicast_group_addr: str = DEFAULT_MCAST_GROUP_ADDRESS
    multicast_port: int = DEFAULT_MCAST_GROUP_PORT
    multicast_iface_addr: str | None = None
    multicast_ttl: int = DEFAULT_MCAST_TTL
    control_listen_iface_addr: str | None = None
    control_listen_port: int = 0
    log_level: int = DEFAULT_LOG_LEVEL

    @property
    def python_log_level(self) -> int:
        """The :mod:`logging` level matching ``log_level``."""
        if self.log_level <= 0:
            return _LOG_LEVELS[0]
        return _LOG_LEVELS[min(self.log_level, 6)]


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build settings from ``environ`` (the process environment by default).

    Unset variables fall back to defaults. Set variables are parsed
    leniently: a numeric value is read up to its first non-digit, and
    a value with no digits reads as zero.
    """
    env = os.environ if environ is None else environ

    def number(key: str, default: int) -> int:
        value = env.get(key)
        return default if value is None else _atoi(value)

    node_id_text = env.get(ENV_NODE_ID)
    node_id = 0 if node_id_text is None else _strtoul(node_id_text) & _NODE_ID_MASK

    return Settings(
        node_id=node_id,
        max_nodes=number(ENV_MAX_NODES, DEFAULT_MAX_NODES),
        multicast_group_addr=env.get(ENV_MCAST_GROUP_ADDR, DEFAULT_MCAST_GROUP_ADDRESS),
        multicast_port=number(ENV_MCAST_GROUP_PORT, DEFAULT_MCAST_GROUP_PORT),
        multicast_iface_addr=env.get(ENV_MCAST_IFACE_ADDR),
        multicast_ttl=number(ENV_MCAST_TTL, DEFAULT_MCAST_TTL),
        control_listen_iface_addr=env.get(ENV_CONTROL_LISTEN_IFACE),
        control_listen_port=number(ENV_CONTROL_LISTEN_PORT, 0),
        log_level=number(ENV_LOG_LEVEL, DEFAULT_LOG_LEVEL),
    )