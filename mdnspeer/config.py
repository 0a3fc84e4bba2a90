"""Configuration parameters for an mdnspeer process.

`DiscoveryConfig` gathers every tunable of the advertise-and-discover
process. The defaults advertise "_foobar._tcp" on port 8080 and search for
"_workstation._tcp" in 10 second rounds.
"""

import dataclasses

from mdnspeer.discovery.mdns.service_type import to_type_name
from mdnspeer.discovery.service_record import MAX_PORT, ServiceRecord

DEFAULT_SERVICE_TYPE = "_foobar._tcp"
DEFAULT_TARGET_SERVICE_TYPE = "_workstation._tcp"
DEFAULT_PORT = 8080
DEFAULT_METADATA = ("My awesome service",)
DEFAULT_QUERY_TIMEOUT_SECONDS = 10.0
DEFAULT_BUFFER_SIZE = 1000
DEFAULT_READY_TIMEOUT_SECONDS = 5.0


@dataclasses.dataclass(frozen=True)
class DiscoveryConfig:
    """Holds configuration for `DiscoveryApp`.

    Attributes:
        service_name: Instance name to advertise. None uses the host name.
        service_type: Service type to advertise.
        domain: mDNS domain for both advertising and searching.
        port: Port to advertise.
        metadata: TXT strings to advertise, in order.
        target_service_type: Service type to search for.
        query_timeout: Duration of one discovery round, in seconds.
        min_round_interval: Minimum time between round starts, in seconds.
            0 runs rounds back to back.
        buffer_size: Capacity of the result channel.
        ready_timeout: How long startup waits for the advertisement to
            become live, in seconds.
    """

    service_name: str | None = None
    service_type: str = DEFAULT_SERVICE_TYPE
    domain: str = "local"
    port: int = DEFAULT_PORT
    metadata: tuple[str, ...] = DEFAULT_METADATA
    target_service_type: str = DEFAULT_TARGET_SERVICE_TYPE
    query_timeout: float = DEFAULT_QUERY_TIMEOUT_SECONDS
    min_round_interval: float = 0.0
    buffer_size: int = DEFAULT_BUFFER_SIZE
    ready_timeout: float = DEFAULT_READY_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        object.__setattr__(self, "metadata", tuple(self.metadata))

        if self.service_name is not None and not self.service_name:
            raise ValueError("service_name cannot be empty.")
        to_type_name(self.service_type, self.domain)
        to_type_name(self.target_service_type, self.domain)
        if not 0 < self.port <= MAX_PORT:
            raise ValueError(f"Invalid port {self.port}.")
        if self.query_timeout <= 0:
            raise ValueError(
                f"query_timeout must be positive, got {self.query_timeout}."
            )
        if self.min_round_interval < 0:
            raise ValueError(
                f"min_round_interval must be non-negative, "
                f"got {self.min_round_interval}."
            )
        if self.buffer_size <= 0:
            raise ValueError(
                f"buffer_size must be positive, got {self.buffer_size}."
            )
        if self.ready_timeout <= 0:
            raise ValueError(
                f"ready_timeout must be positive, got {self.ready_timeout}."
            )

    def make_record(self) -> ServiceRecord:
        """Builds the `ServiceRecord` this configuration advertises."""
        if self.service_name is None:
            return ServiceRecord.for_local_host(
                self.service_type,
                self.port,
                self.metadata,
                domain=self.domain,
            )
        return ServiceRecord(
            instance=self.service_name,
            service_type=self.service_type,
            port=self.port,
            domain=self.domain,
            metadata=self.metadata,
        )
