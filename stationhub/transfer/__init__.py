"""
Transfer Layer.

This package wraps the two external capabilities a download needs: fetching
a byte stream over HTTP and extracting an archive to a directory.
"""

from .archive import ArchiveExtractor, DefaultArchiveExtractor
from .fetcher import Fetcher, HttpFetcher, close_connection_pool

__all__ = [
    "ArchiveExtractor",
    "DefaultArchiveExtractor",
    "Fetcher",
    "HttpFetcher",
    "close_connection_pool",
]
