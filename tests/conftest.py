import pytest

from zapfin.bot.corrections import CorrectionTracker
from zapfin.bot.router import MessageRouter
from zapfin.confirmation.cache import ConfirmationCache
from zapfin.db.repository import LedgerRepository
from zapfin.models.schemas import Intent


class FakeClock:
    def __init__(self, start: float = 1_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeParser:
    """Returns queued intents in order and records every call."""

    def __init__(self, *intents: Intent):
        self.intents = list(intents)
        self.calls: list[tuple[str | None, str | None]] = []

    def queue(self, intent: Intent) -> None:
        self.intents.append(intent)

    def parse(self, user_message, image_url=None) -> Intent:
        self.calls.append((user_message, image_url))
        intent = self.intents.pop(0) if self.intents else Intent()
        return intent.model_copy(update={"texto_original": user_message})


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return ConfirmationCache(timeout=300, clock=clock)


@pytest.fixture
def repo(tmp_path):
    repo = LedgerRepository(str(tmp_path / "ledger.json"))
    yield repo
    repo.close()


@pytest.fixture
def parser():
    return FakeParser()


@pytest.fixture
def corrections(clock):
    return CorrectionTracker(timeout=300, clock=clock)


@pytest.fixture
def message_router(repo, parser, cache, corrections):
    return MessageRouter(repo, parser, cache, corrections)
