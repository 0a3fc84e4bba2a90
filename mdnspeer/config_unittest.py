import pytest

from mdnspeer.config import DiscoveryConfig


def test_defaults():
    config = DiscoveryConfig()

    assert config.service_type == "_foobar._tcp"
    assert config.target_service_type == "_workstation._tcp"
    assert config.port == 8080
    assert config.metadata == ("My awesome service",)
    assert config.query_timeout == 10.0
    assert config.buffer_size == 1000


def test_make_record_uses_host_name_by_default(mocker):
    mocker.patch(
        "mdnspeer.discovery.service_record.socket.gethostname",
        return_value="devbox",
    )

    record = DiscoveryConfig().make_record()

    assert record.instance == "devbox"
    assert record.instance_name == "devbox._foobar._tcp.local."
    assert record.metadata == ("My awesome service",)


def test_make_record_with_explicit_name():
    config = DiscoveryConfig(
        service_name="printer", port=631, metadata=["a", "b"]
    )

    record = config.make_record()

    assert record.instance == "printer"
    assert record.port == 631
    assert record.metadata == ("a", "b")


@pytest.mark.parametrize(
    "overrides",
    [
        {"service_name": ""},
        {"service_type": "foobar"},
        {"target_service_type": "workstation"},
        {"port": 0},
        {"query_timeout": 0},
        {"query_timeout": -1.0},
        {"min_round_interval": -0.5},
        {"buffer_size": 0},
        {"ready_timeout": 0},
    ],
)
def test_invalid_values_rejected(overrides):
    with pytest.raises(ValueError):
        DiscoveryConfig(**overrides)
