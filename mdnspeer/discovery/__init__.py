"""Initializes the mdnspeer.discovery package and exposes its key components.

Discovered peers flow one way: `DiscoveryLoop` runs rounds that write into a
`ResultChannel`, and an `EntryConsumer` drains it.
"""

# Load the mdns subpackage first: discovered_entry imports from it, and it
# imports discovered_entry back.
import mdnspeer.discovery.mdns  # noqa: F401
from mdnspeer.discovery.discovered_entry import DiscoveredEntry
from mdnspeer.discovery.discovery_loop import DiscoveryLoop
from mdnspeer.discovery.entry_consumer import EntryConsumer
from mdnspeer.discovery.result_channel import ResultChannel
from mdnspeer.discovery.service_record import ServiceRecord

__all__ = [
    "DiscoveredEntry",
    "DiscoveryLoop",
    "EntryConsumer",
    "ResultChannel",
    "ServiceRecord",
]
