"""Defines QueryParams, the options of one discovery round."""

import dataclasses

from zeroconf import IPVersion

from mdnspeer.discovery.discovered_entry import DiscoveredEntry
from mdnspeer.discovery.mdns.service_type import to_type_name
from mdnspeer.discovery.result_channel import ResultChannel

DEFAULT_QUERY_TIMEOUT_SECONDS = 1.0


@dataclasses.dataclass
class QueryParams:
    """Options for a single `DiscoveryQuery` round.

    Attributes:
        service_type: Service type to search for, e.g. "_workstation._tcp".
        entries: Channel that receives every discovered entry. Never closed
            by the query.
        timeout: Maximum duration of the round in seconds. Must be positive.
        domain: mDNS domain.
        ip_version: Address families to query on.
    """

    service_type: str
    entries: ResultChannel[DiscoveredEntry]
    timeout: float = DEFAULT_QUERY_TIMEOUT_SECONDS
    domain: str = "local"
    ip_version: IPVersion = IPVersion.V4Only

    def __post_init__(self) -> None:
        if not self.service_type:
            raise ValueError("service_type cannot be empty.")
        if self.entries is None:
            raise ValueError("entries channel cannot be None.")
        # A non-positive timeout would turn the discovery loop into a tight
        # loop flooding the network segment.
        if self.timeout <= 0:
            raise ValueError(
                f"Query timeout must be positive, got {self.timeout}."
            )
        to_type_name(self.service_type, self.domain)

    @property
    def type_name(self) -> str:
        return to_type_name(self.service_type, self.domain)
