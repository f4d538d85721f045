import asyncio
import inspect
import os
import sys
from pathlib import Path

# Configure before any imports that might initialize runtime
os.environ.setdefault("TEST_MODE", "true")
os.environ.setdefault("USE_MEMORY_STORE", "true")
os.environ.setdefault("MODEL_BACKEND", "stub")
os.environ.setdefault("DEFAULT_USAGE_LIMIT", "50")

import pytest  # noqa: E402

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


from prowrite.config import Settings  # noqa: E402
from prowrite.service.chat import ChatService  # noqa: E402
from prowrite.service.llm import LLMService, StubBackend  # noqa: E402
from prowrite.service.runtime import reset_runtime_for_tests  # noqa: E402
from prowrite.service.usage import UsageGate  # noqa: E402
from prowrite.storage.memory import MemoryStore  # noqa: E402


@pytest.fixture(autouse=True)
def reset_runtime_state():
    reset_runtime_for_tests()
    yield
    reset_runtime_for_tests()


@pytest.fixture
def settings():
    return Settings(test_mode=True, use_memory_store=True, model_backend="stub")


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def make_chat(memory_store, settings):
    """Build a ChatService over the memory store with a given backend."""

    def _make(backend=None, **overrides):
        cfg = settings.model_copy(update=overrides) if overrides else settings
        llm = LLMService(backend or StubBackend())
        return ChatService(memory_store, llm, UsageGate(memory_store), cfg)

    return _make


def pytest_pyfunc_call(pyfuncitem):
    if inspect.iscoroutinefunction(pyfuncitem.obj):
        call_kwargs = {
            name: pyfuncitem.funcargs[name]
            for name in pyfuncitem._fixtureinfo.argnames
            if name in pyfuncitem.funcargs
        }
        asyncio.run(pyfuncitem.obj(**call_kwargs))
        return True
    return None


def pytest_configure(config):
    config.addinivalue_line("markers", "asyncio: mark test as async")
