import pytest

from mdnspeer.discovery.service_record import ServiceRecord


def test_for_local_host_uses_host_name(mocker):
    mocker.patch(
        "mdnspeer.discovery.service_record.socket.gethostname",
        return_value="workstation",
    )

    record = ServiceRecord.for_local_host(
        "_foobar._tcp", 8080, ["My awesome service"]
    )

    assert record.instance == "workstation"
    assert record.type_name == "_foobar._tcp.local."
    assert record.instance_name == "workstation._foobar._tcp.local."
    assert record.server == "workstation.local."
    assert record.metadata == ("My awesome service",)
    record.validate()


def test_metadata_list_is_frozen_into_tuple():
    metadata = ["a", "b"]
    record = ServiceRecord("host", "_foobar._tcp", 80, metadata=metadata)
    metadata.append("c")

    assert record.metadata == ("a", "b")


def test_explicit_host_name_gets_trailing_dot():
    record = ServiceRecord(
        "host", "_foobar._tcp", 80, host_name="box.local"
    )

    assert record.server == "box.local."


def test_txt_record_keeps_every_string_in_order():
    record = ServiceRecord(
        "host",
        "_foobar._tcp",
        80,
        metadata=("first", "", "=x", "first"),
    )

    assert record.txt_record() == b"\x05first\x00\x02=x\x05first"


@pytest.mark.parametrize(
    "record",
    [
        ServiceRecord("", "_foobar._tcp", 80),
        ServiceRecord("host", "", 80),
        ServiceRecord("host", "foobar._tcp", 80),
        ServiceRecord("host", "_foobar._tcp", 0),
        ServiceRecord("host", "_foobar._tcp", 70000),
        ServiceRecord("host", "_foobar._tcp", 80, metadata=("x" * 256,)),
    ],
)
def test_validate_rejects_malformed_records(record):
    with pytest.raises(ValueError):
        record.validate()
