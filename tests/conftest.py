from __future__ import annotations
import sys
from pathlib import Path
import pytest

_src = Path(__file__).resolve().parent.parent / "src"
if _src.exists() and str(_src) not in sys.path:
    sys.path.insert(0, str(_src))

from agentrpc.capability.keys import PeerIdentity  # noqa: E402
from agentrpc.capability.protocol import CapabilityProtocol  # noqa: E402
from agentrpc.core.storage import MemoryStore  # noqa: E402
from agentrpc.registry.registry import ServiceRegistry  # noqa: E402
from agentrpc.rpc.dispatcher import ToolDispatcher  # noqa: E402


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start_ms: int = 1_700_000_000_000):
        self.now_ms = start_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, seconds: float) -> None:
        self.now_ms += int(seconds * 1000)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def registry(store, clock):
    return ServiceRegistry(store, clock=clock)


@pytest.fixture
def owner():
    return PeerIdentity.generate(address="trac1owner")


@pytest.fixture
def guest():
    return PeerIdentity.generate(address="trac1guest")


@pytest.fixture
def owner_protocol(owner, clock):
    return CapabilityProtocol(owner, clock=clock)


@pytest.fixture
def dispatcher():
    return ToolDispatcher()
