"""Defines ServiceRecord, the identity of the advertised service."""

import dataclasses
import socket
from typing import Iterable

from mdnspeer.discovery.mdns.service_type import normalize_domain, to_type_name
from mdnspeer.discovery.mdns.txt_record import encode_txt

MAX_PORT = 65535


@dataclasses.dataclass(frozen=True)
class ServiceRecord:
    """Describes one advertised service instance.

    Created once when advertising starts and never modified afterwards.

    Attributes:
        instance: Instance label, typically the local host name.
        service_type: Service type, e.g. "_foobar._tcp".
        port: Port the service listens on.
        domain: mDNS domain, "local" in practice.
        host_name: Target host of the SRV record. Defaults to
            "<instance>.<domain>.".
        ips: Optional IP addresses to publish. When None, the addresses of
            all local IPv4 interfaces are published.
        metadata: Ordered TXT strings.
    """

    instance: str
    service_type: str
    port: int
    domain: str = "local"
    host_name: str | None = None
    ips: tuple[str, ...] | None = None
    metadata: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        # Lists passed by callers are frozen into tuples.
        object.__setattr__(self, "metadata", tuple(self.metadata))
        if self.ips is not None:
            object.__setattr__(self, "ips", tuple(self.ips))

    @classmethod
    def for_local_host(
        cls,
        service_type: str,
        port: int,
        metadata: Iterable[str] = (),
        *,
        domain: str = "local",
        ips: Iterable[str] | None = None,
    ) -> "ServiceRecord":
        """Creates a record named after the local host."""
        return cls(
            instance=socket.gethostname(),
            service_type=service_type,
            port=port,
            domain=domain,
            ips=None if ips is None else tuple(ips),
            metadata=tuple(metadata),
        )

    def validate(self) -> None:
        """Checks that the record can be registered.

        Raises:
            ValueError: If the instance or service type is empty or malformed,
                the port is out of range, or a metadata string does not fit
                in a TXT string.
        """
        if not self.instance:
            raise ValueError("Missing service instance name.")
        if not self.service_type:
            raise ValueError("Missing service type.")
        to_type_name(self.service_type, self.domain)
        if (
            isinstance(self.port, bool)
            or not isinstance(self.port, int)
            or not 0 < self.port <= MAX_PORT
        ):
            raise ValueError(f"Invalid port {self.port!r}.")
        encode_txt(self.metadata)

    @property
    def type_name(self) -> str:
        """Fully qualified type, e.g. "_foobar._tcp.local."."""
        return to_type_name(self.service_type, self.domain)

    @property
    def instance_name(self) -> str:
        """Fully qualified instance, e.g. "myhost._foobar._tcp.local."."""
        return f"{self.instance}.{self.type_name}"

    @property
    def server(self) -> str:
        if self.host_name:
            return (
                self.host_name
                if self.host_name.endswith(".")
                else f"{self.host_name}."
            )
        host = self.instance.split(".")[0]
        return f"{host}.{normalize_domain(self.domain)}."

    def txt_record(self) -> bytes:
        """Returns the metadata as raw TXT record data.

        Every string is published verbatim and in order, duplicates and empty
        strings included.
        """
        return encode_txt(self.metadata)
