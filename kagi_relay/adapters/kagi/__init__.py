"""Kagi API adapter layer."""

from kagi_relay.adapters.kagi.base import AbstractKagiClient
from kagi_relay.adapters.kagi.client import KagiClient
from kagi_relay.adapters.kagi.factory import create_kagi_client

__all__ = [
    "AbstractKagiClient",
    "KagiClient",
    "create_kagi_client",
]
