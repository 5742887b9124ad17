"""Request pacing against per-window quotas.

Rather than counting requests inside a sliding window, the engine spaces
requests evenly: a class allowed ``lim`` requests per 15-minute window needs
``900 / lim`` seconds between requests. Time the caller already spent since
the previous request (processing the last page, writing records) is credited
against that spacing, so the wait returned is only what is still missing.
"""

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict

from flockcli.domain.events.api_events import RequestDeferred, dispatch_event
from flockcli.domain.models.common import AuthMode, OperationClass
from flockcli.infrastructure.resilience.quota_registry import QuotaRegistry

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 15 * 60

Clock = Callable[[], float]
Sleeper = Callable[[float], Awaitable[None]]


@dataclass
class PacingState:
    """Timestamp of the most recent cooldown computation, on the engine's clock."""
    last_request: float


class PacingEngine:
    """Computes how long to wait before the next request of a class."""

    def __init__(
        self,
        registry: QuotaRegistry,
        auth_mode: AuthMode,
        shared_state: bool = False,
        clock: Clock = time.monotonic,
        sleep: Sleeper = asyncio.sleep,
    ):
        """Initializes the engine; all pacing states start at 'now'.

        Args:
            registry: Source of the allowed-requests-per-window figures.
            auth_mode: The session's auth mode; fixed for the engine's lifetime.
            shared_state: If True, every operation class shares one timestamp,
                so time spent on one class counts as elapsed for all of them.
            clock: Monotonic clock returning seconds.
            sleep: Coroutine function used by pause() to suspend.
        """
        self.registry = registry
        self._auth_mode = auth_mode
        self.shared_state = shared_state
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()

        started = clock()
        if shared_state:
            shared = PacingState(last_request=started)
            self._states: Dict[OperationClass, PacingState] = {op: shared for op in OperationClass}
        else:
            self._states = {op: PacingState(last_request=started) for op in OperationClass}
        logger.info(
            f"PacingEngine initialized: auth_mode={auth_mode.value}, "
            f"state={'shared' if shared_state else 'per-class'}"
        )

    @property
    def auth_mode(self) -> AuthMode:
        return self._auth_mode

    def state_for(self, operation_class: OperationClass) -> PacingState:
        return self._states[operation_class]

    def required_spacing(self, operation_class: OperationClass) -> float:
        """Seconds that must separate two requests of this class; 0 if unpaced."""
        allowed = self.registry.allowed_per_window(operation_class, self._auth_mode)
        if allowed == 0:
            return 0.0
        return WINDOW_SECONDS / allowed

    def cooldown(self, operation_class: OperationClass) -> float:
        """Returns the wait needed before the next request of this class.

        Always records the current time as the last request time, whether or
        not any wait is needed.

        Raises:
            ConfigurationError: If the registry has no quota for this class.
        """
        spacing = self.required_spacing(operation_class)
        with self._lock:
            state = self._states[operation_class]
            now = self._clock()
            elapsed = now - state.last_request
            state.last_request = now
        wait = max(0.0, spacing - elapsed)
        logger.debug(
            f"Cooldown for {operation_class.value}: spacing={spacing:.2f}s, "
            f"elapsed={elapsed:.2f}s, wait={wait:.2f}s"
        )
        return wait

    async def pause(self, operation_class: OperationClass) -> float:
        """Suspends for the cooldown of this class and returns how long that was.

        Once the sleep is over the request is about to go out, so the state is
        stamped again: the next cooldown credits only the time spent after this
        request, never the wait itself.
        """
        wait = self.cooldown(operation_class)
        if wait > 0:
            dispatch_event(RequestDeferred(operation=operation_class.value, wait_time_seconds=wait))
            logger.info(f"Pacing {operation_class.value} request: waiting {wait:.1f}s")
        await self._sleep(wait)
        with self._lock:
            state = self._states[operation_class]
            state.last_request = max(state.last_request, self._clock())
        return wait

