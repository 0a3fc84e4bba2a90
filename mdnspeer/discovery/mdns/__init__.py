"""Initializes the mdnspeer.discovery.mdns package.

This package wraps zeroconf: `ServiceAdvertiser` publishes this process on
the local network and `DiscoveryQuery` runs one browse round for peers.
"""

from mdnspeer.discovery.mdns.advertisement_handle import AdvertisementHandle
from mdnspeer.discovery.mdns.discovery_query import DiscoveryQuery, query
from mdnspeer.discovery.mdns.query_params import QueryParams
from mdnspeer.discovery.mdns.service_advertiser import ServiceAdvertiser
from mdnspeer.discovery.mdns.txt_record import decode_txt, encode_txt

__all__ = [
    "AdvertisementHandle",
    "DiscoveryQuery",
    "QueryParams",
    "ServiceAdvertiser",
    "decode_txt",
    "encode_txt",
    "query",
]
