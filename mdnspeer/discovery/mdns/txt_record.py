"""Encodes metadata strings as DNS TXT record data and back.

TXT data is a sequence of strings, each prefixed with its length in one
byte. The strings are kept exactly as given: no key/value parsing, order and
duplicates preserved.
"""

from typing import Iterable

MAX_TXT_STRING_LENGTH = 255


def encode_txt(strings: Iterable[str]) -> bytes:
    """Returns `strings` as length-prefixed TXT record data.

    Raises:
        ValueError: If a string is longer than 255 bytes once UTF-8 encoded.
    """
    result = b""
    for entry in strings:
        encoded = entry.encode("utf-8")
        if len(encoded) > MAX_TXT_STRING_LENGTH:
            raise ValueError(
                f"TXT string too long ({len(encoded)} bytes): {entry!r}"
            )
        result = b"".join((result, bytes((len(encoded),)), encoded))
    return result


def decode_txt(text: bytes | None) -> tuple[str, ...]:
    """Splits TXT record data back into strings.

    A record holding one empty string is how DNS spells "no metadata", so it
    decodes to an empty tuple. A length byte running past the end of the data
    yields whatever bytes remain.
    """
    if not text or text == b"\x00":
        return ()

    strings: list[str] = []
    pos = 0
    total = len(text)
    while pos < total:
        length = text[pos]
        start = pos + 1
        strings.append(
            text[start : start + length].decode("utf-8", errors="replace")
        )
        pos = start + length
    return tuple(strings)
