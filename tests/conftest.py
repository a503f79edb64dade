# === NAVMAP v1 ===
# {
#   "module": "tests.conftest",
#   "purpose": "Shared pytest fixtures for suite",
#   "sections": [
#     {
#       "id": "isolate-settings",
#       "name": "_isolate_settings",
#       "anchor": "function-isolate-settings",
#       "kind": "function"
#     },
#     {
#       "id": "restore-package-logger",
#       "name": "_restore_package_logger",
#       "anchor": "function-restore-package-logger",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""
Pytest Configuration

This module configures shared pytest behaviour: ``src`` on ``sys.path``,
the HTTP mocking fixtures, and isolation of cached settings and of the
package logger between tests.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Generator

import pytest

# --- Globals ---

ROOT = Path(__file__).resolve().parent.parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from tests.fixtures.http_mocking import (  # noqa: E402,F401
    http_mock,
    make_client,
)


@pytest.fixture(autouse=True)
def _isolate_settings(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Keep ``REQUESTGUARD_*`` variables and the settings cache out of each test."""

    from RequestGuard.settings import reset_settings

    for name in list(os.environ):
        if name.upper().startswith("REQUESTGUARD_"):
            monkeypatch.delenv(name, raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture(autouse=True)
def _restore_package_logger() -> Generator[None, None, None]:
    """Undo ``setup_logging`` side effects so ``caplog`` keeps seeing records."""

    logger = logging.getLogger("RequestGuard")
    handlers = list(logger.handlers)
    level = logger.level
    propagate = logger.propagate
    yield
    for handler in list(logger.handlers):
        if handler not in handlers:
            logger.removeHandler(handler)
    logger.setLevel(level)
    logger.propagate = propagate
