"""
Remote Authority Package

The contract for the backend that owns goal versions, plus two
implementations: an in-process simulation and an HTTP client.
"""

from savings_sync.services.remote.interface import (
    RemoteAuthorityError,
    RemoteAuthorityInterface,
    RemoteProtocolError,
    RemoteUnavailableError,
)
from savings_sync.services.remote.simulated import SimulatedRemoteAuthority
from savings_sync.services.remote.http_client import HttpRemoteAuthority

__all__ = [
    # Interface
    "RemoteAuthorityInterface",
    # Exceptions
    "RemoteAuthorityError",
    "RemoteProtocolError",
    "RemoteUnavailableError",
    # Implementations
    "HttpRemoteAuthority",
    "SimulatedRemoteAuthority",
]
