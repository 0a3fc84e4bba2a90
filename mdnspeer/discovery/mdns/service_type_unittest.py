import pytest

from mdnspeer.discovery.mdns.service_type import normalize_domain, to_type_name


@pytest.mark.parametrize(
    "service_type,expected",
    [
        ("_foobar", "_foobar._tcp.local."),
        ("_foobar._tcp", "_foobar._tcp.local."),
        ("_foobar._udp", "_foobar._udp.local."),
        ("_foobar._tcp.local.", "_foobar._tcp.local."),
    ],
)
def test_to_type_name(service_type, expected):
    assert to_type_name(service_type) == expected


def test_to_type_name_custom_domain():
    assert to_type_name("_foobar._tcp", "example.") == "_foobar._tcp.example."


def test_to_type_name_rejects_missing_underscore():
    with pytest.raises(ValueError):
        to_type_name("foobar._tcp")


def test_to_type_name_rejects_non_str():
    with pytest.raises(TypeError):
        to_type_name(None)  # type: ignore[arg-type]


def test_normalize_domain():
    assert normalize_domain(".local.") == "local"
    with pytest.raises(ValueError):
        normalize_domain("..")
