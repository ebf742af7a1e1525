from dataclasses import dataclass, asdict
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class FailureRecord:
    """
    One URL that answered "not found".
    Title is left empty by the crawl; it is reserved for later enrichment.
    """
    url: str
    title: Optional[str] = None

    def to_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class Found:
    """Channel message: a not-found URL to report."""
    url: str


class _Done:
    """Channel message: no more messages will follow."""
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return "DONE"


DONE = _Done()


class CrawlState(Enum):
    INIT = "init"
    RUNNING = "running"
    DRAINING = "draining"
    DONE = "done"
    ABORTED = "aborted"


class SupervisorOutcome(Enum):
    COMPLETED = "completed"   # Done sentinel received
    CLOSED = "closed"         # channel closed without a sentinel
    CANCELLED = "cancelled"   # interrupt arrived first


# === ERRORS ===

class ChannelClosed(Exception):
    """Raised by send() when the receiving side is gone or the handle was closed."""


class LinkResolutionError(ValueError):
    """An href could not be resolved against the page it was found on."""

    def __init__(self, base_url, href, reason=None):
        self.base_url = base_url
        self.href = href
        detail = f": {reason}" if reason else ""
        super().__init__(f"cannot resolve {href!r} against {base_url}{detail}")


class InvalidRootUrl(ValueError):
    """The crawl root is not an absolute http(s) URL with a domain."""
