"""Domain Events related to paced API calls and stream sessions.

Examples include events for when requests are deferred by pacing, when a
page or lookup batch arrives, and when a stream recovers or closes.
"""

from dataclasses import dataclass, field
import logging
import time
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass


# --- Pull Path Events ---

@dataclass
class RequestDeferred(DomainEvent):
    """Event triggered when a request is held back by the pacing engine."""
    operation: str
    wait_time_seconds: float
    timestamp: float = field(default_factory=time.time)

@dataclass
class PageFetched(DomainEvent):
    """Event triggered when the paginator receives a page."""
    operation: str
    subject: str
    item_count: int
    page_number: int
    has_more: bool
    timestamp: float = field(default_factory=time.time)

@dataclass
class BatchResolved(DomainEvent):
    """Event triggered when a bulk lookup batch comes back."""
    batch_number: int
    requested: int
    resolved: int
    timestamp: float = field(default_factory=time.time)

# --- Push Path Events ---

@dataclass
class StreamErrorRecovered(DomainEvent):
    """Event triggered when a transient stream error is absorbed."""
    error_type: str
    error_message: str
    timestamp: float = field(default_factory=time.time)

@dataclass
class StreamClosed(DomainEvent):
    """Event triggered when a stream session reaches a terminal state."""
    final_state: str
    events_delivered: int
    reason: Optional[str] = None
    timestamp: float = field(default_factory=time.time)


def dispatch_event(event: DomainEvent) -> None:
    """Publishes an event. Currently the event log is the debug log."""
    logger.debug(f"EVENT: {event}")
