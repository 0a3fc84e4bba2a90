"""Exception types raised by mdnspeer.

The taxonomy mirrors how each failure is handled:
  - `RegistrationError`: the service could not be advertised. Fatal at
    startup.
  - `QueryError`: a single discovery round failed. The discovery loop logs it
    and moves on to the next round.
  - `ChannelClosedError`: an entry was written after the result channel was
    closed. This is a shutdown ordering bug and is always propagated.
"""


class DiscoveryError(Exception):
    """Base class for all mdnspeer errors."""


class RegistrationError(DiscoveryError):
    """Raised when a service advertisement cannot be established."""


class QueryError(DiscoveryError):
    """Raised when a discovery round cannot send or receive on the network."""


class ChannelClosedError(DiscoveryError):
    """Raised when a closed `ResultChannel` is written to or read from."""
