"""Patron directory web-service client.

Main Components
---------------
- DirectoryClient: httpx client for login, search, create and update
- SearchResult / MatchCandidate: decoded search responses
- write_with_retry: bounded retry for create/update calls
"""

from patronsync.directory.client import DirectoryClient, PatronDirectory, write_with_retry
from patronsync.directory.models import MatchCandidate, SearchOptions, SearchResult

__all__ = [
    "DirectoryClient",
    "PatronDirectory",
    "write_with_retry",
    "MatchCandidate",
    "SearchOptions",
    "SearchResult",
]
