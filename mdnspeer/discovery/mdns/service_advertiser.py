"""Advertises this process as an mDNS service instance using zeroconf."""

import asyncio
import logging
from collections.abc import Callable

from zeroconf import Error as ZeroconfError
from zeroconf import IPVersion, ServiceInfo
from zeroconf.asyncio import AsyncZeroconf

from mdnspeer.discovery.mdns.advertisement_handle import AdvertisementHandle
from mdnspeer.discovery.service_record import ServiceRecord
from mdnspeer.errors import RegistrationError
from mdnspeer.util.ip import get_all_address_strings

_logger = logging.getLogger(__name__)

AddressProvider = Callable[[], list[str]]


class ServiceAdvertiser:
    """Registers a `ServiceRecord` on the local network segment.

    Each successful `start()` returns an `AdvertisementHandle` that must be
    passed to `stop()` exactly once. By default every advertisement gets its
    own `AsyncZeroconf` instance, which is closed with the handle. When a
    shared instance is injected it is used for registration but never closed.
    """

    def __init__(
        self,
        *,
        zc_instance: AsyncZeroconf | None = None,
        address_provider: AddressProvider | None = None,
    ) -> None:
        """Initializes the ServiceAdvertiser.

        Args:
            zc_instance: Optional shared `AsyncZeroconf` instance.
            address_provider: Returns the IP strings to publish for records
                without explicit `ips`. Defaults to all local IPv4 addresses.
        """
        self.__shared_zc: AsyncZeroconf | None = zc_instance
        self.__address_provider: AddressProvider = (
            address_provider or get_all_address_strings
        )

    async def start(self, record: ServiceRecord) -> AdvertisementHandle:
        """Registers `record` and returns the handle of the live registration.

        The service is visible to peers once this returns.

        Raises:
            RegistrationError: If the record is malformed, the zeroconf
                instance cannot bind its sockets, or registration fails.
        """
        try:
            record.validate()
        except (TypeError, ValueError) as e:
            raise RegistrationError(f"Invalid service record: {e}") from e

        addresses = (
            list(record.ips)
            if record.ips is not None
            else self.__address_provider()
        )

        try:
            service_info = ServiceInfo(
                type_=record.type_name,
                name=record.instance_name,
                port=record.port,
                properties=record.txt_record(),
                server=record.server,
                parsed_addresses=addresses,
            )
        except (ZeroconfError, ValueError) as e:
            raise RegistrationError(
                f"Cannot build service info for {record.instance_name}: {e}"
            ) from e

        owns_zc = self.__shared_zc is None
        zc = self.__shared_zc or self.__create_zeroconf(addresses)

        try:
            await zc.async_register_service(service_info)
        except (OSError, ZeroconfError, ValueError) as e:
            if owns_zc:
                await zc.async_close()
            raise RegistrationError(
                f"Failed to register {record.instance_name}: {e}"
            ) from e
        except asyncio.CancelledError:
            if owns_zc:
                await zc.async_close()
            raise

        _logger.info(
            "Service %s registered on port %d (addresses: %s).",
            record.instance_name,
            record.port,
            ", ".join(addresses) or "none",
        )
        return AdvertisementHandle(zc, service_info, owns_zc=owns_zc)

    async def stop(self, handle: AdvertisementHandle | None) -> None:
        """Releases `handle`. No-op for None (a failed start) or a released
        handle."""
        if handle is None:
            _logger.debug("No advertisement to stop.")
            return
        await handle.release()

    async def serve(
        self,
        record: ServiceRecord,
        stop_signal: asyncio.Event,
        ready: asyncio.Event | None = None,
    ) -> None:
        """Advertises `record` until `stop_signal` is set.

        Sets `ready` once the registration is live. The registration is
        released on every exit path, including cancellation.

        Raises:
            RegistrationError: If the registration cannot be established.
        """
        handle = await self.start(record)
        try:
            if ready is not None:
                ready.set()
            await stop_signal.wait()
            _logger.info(
                "Advertisement for %s shutting down.", handle.service_name
            )
        finally:
            await self.stop(handle)

    def __create_zeroconf(self, addresses: list[str]) -> AsyncZeroconf:
        ip_version = (
            IPVersion.All
            if any(":" in address for address in addresses)
            else IPVersion.V4Only
        )
        try:
            _logger.info(
                "Creating new AsyncZeroconf instance (%s).", ip_version
            )
            return AsyncZeroconf(ip_version=ip_version)
        except (OSError, ZeroconfError) as e:
            raise RegistrationError(
                f"Cannot open mDNS sockets: {e}"
            ) from e
