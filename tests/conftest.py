import pytest

from flockcli.domain.models.common import AuthMode
from flockcli.infrastructure.config.settings import clear_test_config, reset_configuration
from flockcli.infrastructure.resilience.pacing import PacingEngine
from flockcli.infrastructure.resilience.quota_registry import QuotaRegistry


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep stand-in that records the requested durations."""

    def __init__(self, clock: FakeClock = None):
        self.calls = []
        self.clock = clock

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        if self.clock is not None:
            self.clock.advance(seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleeper(clock):
    return RecordingSleep(clock)


@pytest.fixture
def pacing(clock, sleeper):
    """App-context pacing engine on a fake clock with a recording sleep."""
    return PacingEngine(QuotaRegistry(), AuthMode.APP_CONTEXT, clock=clock, sleep=sleeper)


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch):
    """Keep real credentials and config overrides out of the tests."""
    for variable in (
        "SOCIAL_APP_BEARER_TOKEN",
        "SOCIAL_USER_ACCESS_TOKEN",
        "AUTH_MODE",
        "AUTH_APP_BEARER_TOKEN",
        "AUTH_USER_ACCESS_TOKEN",
        "LOOKUP_BATCH_SIZE",
        "PACING_SHARED_STATE",
    ):
        monkeypatch.delenv(variable, raising=False)
    yield
    clear_test_config()
    reset_configuration()
