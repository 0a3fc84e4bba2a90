"""Defines DiscoveredEntry, one peer found by a discovery round."""

import dataclasses

from zeroconf import ServiceInfo

from mdnspeer.discovery.mdns.txt_record import decode_txt


@dataclasses.dataclass(frozen=True)
class DiscoveredEntry:
    """Represents a single discovered service instance.

    Entries are immutable values; whoever receives one from the result
    channel owns it.

    Attributes:
        name: Fully qualified mDNS instance name.
        host: Host name from the SRV record, e.g. "myhost.local.".
        addresses: IP address strings from the A/AAAA records.
        port: Service port.
        metadata: TXT strings, in record order.
    """

    name: str
    host: str
    addresses: tuple[str, ...]
    port: int
    metadata: tuple[str, ...] = ()

    @property
    def info(self) -> str:
        """All metadata strings joined with '|'."""
        return "|".join(self.metadata)

    @classmethod
    def from_service_info(cls, info: ServiceInfo) -> "DiscoveredEntry":
        """Builds an entry from a resolved zeroconf `ServiceInfo`.

        Metadata is read from the raw TXT data, one string per TXT string.

        Raises:
            ValueError: If the service info carries no port.
        """
        if info.port is None:
            raise ValueError(f"Service '{info.name}' has no port.")

        return cls(
            name=info.name,
            host=info.server or "",
            addresses=tuple(info.parsed_addresses()),
            port=info.port,
            metadata=decode_txt(info.text),
        )
