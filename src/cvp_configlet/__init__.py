"""Client for managing configlet assignments through a CVP-style management API."""
from .errors import CvpError, NotFound, RemoteRejected, TransportFailure, PartialCommit

__version__ = "0.1.0"

__all__ = [
    "CvpError",
    "NotFound",
    "RemoteRejected",
    "TransportFailure",
    "PartialCommit",
]
