"""mdnspeer: advertise a service over mDNS and discover peers.

One process registers itself as a service instance on the local network and
keeps browsing for instances of another service type, handing every peer it
finds to a consumer.
"""

from mdnspeer.app import DiscoveryApp
from mdnspeer.config import DiscoveryConfig
from mdnspeer.errors import (
    ChannelClosedError,
    DiscoveryError,
    QueryError,
    RegistrationError,
)

__all__ = [
    "ChannelClosedError",
    "DiscoveryApp",
    "DiscoveryConfig",
    "DiscoveryError",
    "QueryError",
    "RegistrationError",
]
