"""Utility classes and functions for mdnspeer."""

from mdnspeer.util.ip import get_all_address_strings
from mdnspeer.util.stopable import Stopable

__all__ = [
    "Stopable",
    "get_all_address_strings",
]
