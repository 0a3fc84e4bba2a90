import pytest

from mdnspeer.discovery.mdns.txt_record import decode_txt, encode_txt


def test_encode_prefixes_each_string_with_its_length():
    assert encode_txt(["My awesome service"]) == (
        bytes([18]) + b"My awesome service"
    )
    assert encode_txt(["a", "", "bc"]) == b"\x01a\x00\x02bc"


def test_encode_empty_metadata_is_empty():
    assert encode_txt([]) == b""


def test_encode_rejects_strings_over_255_bytes():
    encode_txt(["x" * 255])
    with pytest.raises(ValueError):
        encode_txt(["x" * 256])


@pytest.mark.parametrize(
    "metadata",
    [
        ("My awesome service",),
        ("b", "a", "c"),
        ("a=b",),
        ("=x",),
        ("My awesome service", "My awesome service"),
        ("", "after-empty"),
        ("grüße",),
    ],
)
def test_strings_survive_encode_and_decode_verbatim(metadata):
    assert decode_txt(encode_txt(metadata)) == metadata


def test_decode_treats_single_empty_string_as_no_metadata():
    assert decode_txt(b"\x00") == ()
    assert decode_txt(b"") == ()
    assert decode_txt(None) == ()


def test_decode_truncated_string_keeps_remaining_bytes():
    assert decode_txt(b"\x05abc") == ("abc",)
