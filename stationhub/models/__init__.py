"""
Data Models Layer.

This package contains the Pydantic models and dataclasses that define the core
data structures used throughout the application: installations, downloads,
server descriptors and preferences.
"""

from .download import Download, DownloadState, TransferOutcome, TransferResult
from .installation import Installation
from .preferences import Preferences
from .server import ServerDescriptor

__all__ = [
    "Download",
    "DownloadState",
    "Installation",
    "Preferences",
    "ServerDescriptor",
    "TransferOutcome",
    "TransferResult",
]
