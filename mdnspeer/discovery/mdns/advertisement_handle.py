"""Defines AdvertisementHandle, ownership of one live mDNS registration."""

import logging

from zeroconf import ServiceInfo
from zeroconf.asyncio import AsyncZeroconf

_logger = logging.getLogger(__name__)


class AdvertisementHandle:
    """Owns a registered `ServiceInfo` and the zeroconf instance holding it.

    Created only by `ServiceAdvertiser.start()`. Releasing the handle is the
    only way to stop advertising; it happens at most once, later calls are
    no-ops.
    """

    def __init__(
        self,
        zc: AsyncZeroconf,
        service_info: ServiceInfo,
        *,
        owns_zc: bool,
    ) -> None:
        self.__zc: AsyncZeroconf = zc
        self.__service_info: ServiceInfo = service_info
        self.__owns_zc: bool = owns_zc
        self.__released: bool = False

    @property
    def service_name(self) -> str:
        """Fully qualified instance name being advertised."""
        return str(self.__service_info.name)

    @property
    def is_released(self) -> bool:
        return self.__released

    async def release(self) -> None:
        """Unregisters the service and closes an owned zeroconf instance.

        A shared zeroconf instance is left open for its owner to close.
        """
        if self.__released:
            _logger.debug(
                "Advertisement %s already released.", self.service_name
            )
            return
        self.__released = True

        try:
            goodbye = await self.__zc.async_unregister_service(
                self.__service_info
            )
            # The goodbye must be on the wire before an owned instance closes.
            await goodbye
            _logger.info("Service %s unregistered.", self.service_name)
        except Exception as e:  # pylint: disable=broad-exception-caught
            _logger.error(
                "Failed to unregister service %s. Error: %s",
                self.service_name,
                e,
                exc_info=True,
            )
        finally:
            if self.__owns_zc:
                await self.__zc.async_close()
                _logger.info(
                    "Owned AsyncZeroconf instance for %s closed.",
                    self.service_name,
                )
