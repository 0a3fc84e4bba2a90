"""Defines Stopable ABC, an interface for long-running discovery components."""

from abc import ABC, abstractmethod


# pylint: disable=R0903 # Abstract interface for stopable components
class Stopable(ABC):
    """Represents a component that runs until it is explicitly stopped.

    Implementations must make `stop()` safe to call before the component was
    started and safe to call more than once.
    """

    @abstractmethod
    async def stop(self) -> None:
        """Signals the component to stop and waits until it has done so."""
