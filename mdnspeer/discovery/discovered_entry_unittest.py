import dataclasses
from unittest.mock import MagicMock

import pytest
from zeroconf import ServiceInfo

from mdnspeer.discovery.discovered_entry import DiscoveredEntry


def make_service_info(text, port=8080):
    info = MagicMock()
    info.name = "myhost._foobar._tcp.local."
    info.server = "myhost.local."
    info.port = port
    info.text = text
    info.parsed_addresses.return_value = ["192.168.1.20", "10.0.0.2"]
    return info


def test_from_service_info_keeps_txt_strings():
    info = make_service_info(bytes([18]) + b"My awesome service")

    entry = DiscoveredEntry.from_service_info(info)

    assert entry.name == "myhost._foobar._tcp.local."
    assert entry.host == "myhost.local."
    assert entry.port == 8080
    assert entry.addresses == ("192.168.1.20", "10.0.0.2")
    assert list(entry.metadata) == ["My awesome service"]


def test_from_service_info_keeps_key_value_strings_in_order():
    info = make_service_info(b"\x0bversion=1.2\x04flag\x06empty=")

    entry = DiscoveredEntry.from_service_info(info)

    assert entry.metadata == ("version=1.2", "flag", "empty=")
    assert entry.info == "version=1.2|flag|empty="


def test_from_service_info_keeps_duplicates_and_leading_equals():
    info = make_service_info(b"\x02=x\x01a\x01a")

    entry = DiscoveredEntry.from_service_info(info)

    assert entry.metadata == ("=x", "a", "a")


def test_from_service_info_without_txt():
    entry = DiscoveredEntry.from_service_info(make_service_info(b""))

    assert entry.metadata == ()
    assert entry.info == ""


def test_from_real_service_info_uses_published_txt():
    info = ServiceInfo(
        "_foobar._tcp.local.",
        "myhost._foobar._tcp.local.",
        port=8080,
        properties=b"\x02=x\x12My awesome service\x12My awesome service",
        server="myhost.local.",
        parsed_addresses=["192.168.1.20"],
    )

    entry = DiscoveredEntry.from_service_info(info)

    assert entry.metadata == (
        "=x",
        "My awesome service",
        "My awesome service",
    )
    assert entry.addresses == ("192.168.1.20",)


def test_from_service_info_without_port_raises():
    with pytest.raises(ValueError):
        DiscoveredEntry.from_service_info(make_service_info(b"", port=None))


def test_entry_is_immutable():
    entry = DiscoveredEntry("a", "h.local.", ("1.2.3.4",), 1)

    with pytest.raises(dataclasses.FrozenInstanceError):
        entry.port = 2  # type: ignore[misc]
