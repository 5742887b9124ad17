"""Defines common Value Objects used across different domain contexts.

These objects represent simple values or concepts like identifiers, cursors,
auth modes and operation classes, ensuring consistency and type safety.
"""

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, NewType, Optional, Tuple

from flockcli.domain.models.errors import ConfigurationError

# === Core Value Objects ===

# Using NewType for semantic clarity; identifiers travel as strings because
# the platform's numeric ids overflow 53-bit floats in some clients.
UserId = NewType("UserId", str)            # Numeric user id, as a string
StatusId = NewType("StatusId", str)        # Numeric post id, as a string
ScreenName = NewType("ScreenName", str)    # Handle without the leading '@'
Cursor = NewType("Cursor", int)            # Opaque continuation token
Record = Dict[str, Any]                    # A raw JSON object from the API

# Cursor value the platform treats as "start from the first page".
FIRST_CURSOR = Cursor(-1)

# === Auth & Quota Context ===

class AuthMode(enum.Enum):
    """Which authentication flow the session was created with."""
    USER_CONTEXT = "user_context"
    APP_CONTEXT = "app_context"


class OperationClass(enum.Enum):
    """Category of remote request, each governed by its own quota."""
    ASSOCIATES = "associates"
    DIRECT_MESSAGES = "direct_messages"
    TIMELINE = "timeline"
    LOOKUP = "lookup"
    DEFAULT = "default"


class AssociateKind(enum.Enum):
    """Which side of the relationship graph to list."""
    FOLLOWERS = "followers"
    FRIENDS = "friends"


class LookupKind(enum.Enum):
    """What a bulk lookup resolves identifiers into."""
    STATUSES = "statuses"
    USERS = "users"


# === Paging Context ===

@dataclass
class Page:
    """One page of a paginated listing.

    ``next_cursor`` of ``None`` is the end marker: there are no more pages.
    """
    items: List[Any] = field(default_factory=list)
    next_cursor: Optional[Cursor] = None

    @property
    def is_last(self) -> bool:
        return not self.items or self.next_cursor is None


# === Streaming Context ===

class StreamSignal(enum.Enum):
    """Returned by stream handlers to keep listening or end the session."""
    CONTINUE = "continue"
    STOP = "stop"


class StreamState(enum.Enum):
    IDLE = "idle"
    CONNECTED = "connected"
    CLOSED = "closed"
    ERROR = "error"


@dataclass(frozen=True)
class StreamFilter:
    """Geographic bounding box applied server-side to the filtered stream.

    Coordinates are (west, south, east, north) in degrees of
    longitude/latitude, the order the platform expects them in.
    """
    west: float
    south: float
    east: float
    north: float

    def __post_init__(self) -> None:
        if not (-180.0 <= self.west <= 180.0 and -180.0 <= self.east <= 180.0):
            raise ConfigurationError(f"Longitudes must lie in [-180, 180]: {self.as_tuple()}")
        if not (-90.0 <= self.south <= 90.0 and -90.0 <= self.north <= 90.0):
            raise ConfigurationError(f"Latitudes must lie in [-90, 90]: {self.as_tuple()}")
        if self.west >= self.east or self.south >= self.north:
            raise ConfigurationError(
                f"Bounding box must have west < east and south < north: {self.as_tuple()}"
            )

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.west, self.south, self.east, self.north)

    def as_locations_param(self) -> str:
        """Renders the box as the comma-separated ``locations`` parameter."""
        return ",".join(str(value) for value in self.as_tuple())

    @classmethod
    def parse(cls, text: str) -> "StreamFilter":
        """Parses 'west,south,east,north' as typed on the command line."""
        parts = [part.strip() for part in text.split(",")]
        if len(parts) != 4:
            raise ConfigurationError(
                f"Expected four comma-separated coordinates (west,south,east,north), got: '{text}'"
            )
        try:
            west, south, east, north = (float(part) for part in parts)
        except ValueError as e:
            raise ConfigurationError(f"Invalid coordinate in bounding box '{text}': {e}") from e
        return cls(west=west, south=south, east=east, north=north)
