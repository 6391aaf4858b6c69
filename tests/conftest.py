"""
Pytest configuration and shared fixtures
"""

import logging
import sys
import textwrap

import pytest

from AdminKernel.kernel.deferred import DeferredRegistry
from AdminKernel.kernel.hooks import HookRegistry
from AdminKernel.kernel.signal_bus import SignalBus
from AdminKernel.module.loader import ModuleLoader


@pytest.fixture
def signals() -> SignalBus:
    """A fresh signal bus."""
    return SignalBus()


@pytest.fixture
def hooks() -> HookRegistry:
    """A fresh hook registry."""
    return HookRegistry()


@pytest.fixture
def deferred(signals) -> DeferredRegistry:
    """A deferred registry wired to the signal bus fixture."""
    return DeferredRegistry(signals)


@pytest.fixture
def loader() -> ModuleLoader:
    """An empty module loader."""
    return ModuleLoader()


@pytest.fixture
def entry_package(tmp_path, monkeypatch):
    """
    Writes an importable `admin_entries` module with manifest entry points
    and returns the directory holding it.
    """
    source = textwrap.dedent(
        '''
        CALLS = []


        async def connect_genres(ctx):
            CALLS.append(("connect", "genres"))


        def connect_books(ctx):
            CALLS.append(("connect", "books"))


        def disconnect_books():
            CALLS.append(("disconnect", "books"))


        class Nested:
            @staticmethod
            def connect(ctx):
                CALLS.append(("connect", "nested"))


        NOT_CALLABLE = 42
        '''
    )
    (tmp_path / "admin_entries.py").write_text(source, encoding="utf-8")
    monkeypatch.syspath_prepend(str(tmp_path))
    monkeypatch.delitem(sys.modules, "admin_entries", raising=False)
    yield tmp_path


@pytest.fixture(autouse=True)
def reset_adminkernel_logger():
    """Drop handlers installed by setup_logging() between tests."""
    yield
    logger = logging.getLogger("AdminKernel")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
