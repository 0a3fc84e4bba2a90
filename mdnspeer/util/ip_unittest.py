import socket  # For AF_INET, AF_INET6 constants

from mdnspeer.util import ip as ip_util


# Helper to create a mock address object
def create_mock_address(mocker, family, address):
    mock_addr = mocker.MagicMock()
    mock_addr.family = family
    mock_addr.address = address
    return mock_addr


class TestIpUtils:

    def test_no_interfaces(self, mocker):
        mock_net_if_addrs = mocker.patch("psutil.net_if_addrs")
        mock_net_if_addrs.return_value = {}

        result = ip_util.get_all_address_strings()

        assert result == []
        mock_net_if_addrs.assert_called_once()

    def test_interface_without_ipv4(self, mocker):
        mock_net_if_addrs = mocker.patch("psutil.net_if_addrs")
        mock_net_if_addrs.return_value = {
            "eth0": [
                create_mock_address(mocker, socket.AF_INET6, "::1"),
                create_mock_address(mocker, socket.AF_INET6, "fe80::1"),
            ]
        }

        assert ip_util.get_all_address_strings() == []

    def test_multiple_interfaces_keep_interface_order(self, mocker):
        mock_net_if_addrs = mocker.patch("psutil.net_if_addrs")
        mock_net_if_addrs.return_value = {
            "eth0": [
                create_mock_address(mocker, socket.AF_INET, "192.168.1.103"),
                create_mock_address(mocker, socket.AF_INET6, "fe80::3"),
            ],
            "eth1": [
                create_mock_address(mocker, socket.AF_INET, "10.0.0.5"),
                create_mock_address(mocker, socket.AF_INET, "10.0.0.6"),
            ],
        }

        result = ip_util.get_all_address_strings()
        print(f"  Result: {result}")

        assert result == ["192.168.1.103", "10.0.0.5", "10.0.0.6"]

    def test_duplicate_addresses_reported_once(self, mocker):
        mock_net_if_addrs = mocker.patch("psutil.net_if_addrs")
        mock_net_if_addrs.return_value = {
            "eth0": [create_mock_address(mocker, socket.AF_INET, "10.1.1.1")],
            "br0": [create_mock_address(mocker, socket.AF_INET, "10.1.1.1")],
        }

        assert ip_util.get_all_address_strings() == ["10.1.1.1"]

    def test_loopback_filtering(self, mocker):
        mock_net_if_addrs = mocker.patch("psutil.net_if_addrs")
        mock_net_if_addrs.return_value = {
            "lo": [create_mock_address(mocker, socket.AF_INET, "127.0.0.1")],
            "eth0": [
                create_mock_address(mocker, socket.AF_INET, "172.16.0.10")
            ],
        }

        assert ip_util.get_all_address_strings() == [
            "127.0.0.1",
            "172.16.0.10",
        ]
        assert ip_util.get_all_address_strings(include_loopback=False) == [
            "172.16.0.10"
        ]
