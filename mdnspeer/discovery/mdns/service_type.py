"""Normalizes mDNS service type strings to fully qualified type names."""

_TRANSPORT_SUFFIXES = ("._tcp", "._udp")


def normalize_domain(domain: str) -> str:
    """Returns `domain` without leading or trailing dots."""
    if not isinstance(domain, str):
        raise TypeError(f"domain must be str, got {type(domain).__name__}.")
    stripped = domain.strip(".")
    if not stripped:
        raise ValueError("domain cannot be empty.")
    return stripped


def to_type_name(service_type: str, domain: str = "local") -> str:
    """Builds the fully qualified mDNS type name for `service_type`.

    Accepts any of the usual spellings:
      - "_foobar"              -> "_foobar._tcp.local."
      - "_foobar._tcp"         -> "_foobar._tcp.local."
      - "_foobar._tcp.local."  -> unchanged

    Args:
        service_type: Service type. Must start with '_'.
        domain: Domain appended when `service_type` is not fully qualified.

    Raises:
        TypeError: If `service_type` is not a str.
        ValueError: If `service_type` is empty or lacks the leading '_'.
    """
    if not isinstance(service_type, str):
        raise TypeError(
            f"service_type must be str, got {type(service_type).__name__}."
        )
    if not service_type.startswith("_"):
        raise ValueError(
            f"service_type must start with '_', got '{service_type}'."
        )

    if service_type.endswith("."):
        return service_type

    suffix = f".{normalize_domain(domain)}."
    if service_type.endswith(_TRANSPORT_SUFFIXES):
        return f"{service_type}{suffix}"
    return f"{service_type}._tcp{suffix}"
