"""
Pytest Configuration

Places ``src`` on ``sys.path`` so the suite runs from a plain checkout, and
provides shared fixtures for driving fallback chains.

Usage:
    pytest tests/fallback_chain
"""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import Any, Awaitable, Callable

import pytest

ROOT = Path(__file__).resolve().parent.parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


@pytest.fixture
def run() -> Callable[[Awaitable[Any]], Any]:
    """Run a coroutine to completion on a fresh event loop."""

    def _run(awaitable: Awaitable[Any]) -> Any:
        async def _main() -> Any:
            return await awaitable

        return asyncio.run(_main())

    return _run


@pytest.fixture(autouse=True)
def _reset_fallbackchain_logger() -> Any:
    """Drop handlers installed by ``setup_logging`` between tests."""
    yield
    logger = logging.getLogger("FallbackChain")
    for handler in list(logger.handlers):
        if getattr(handler, "_fallbackchain_managed", False):
            logger.removeHandler(handler)
            handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
