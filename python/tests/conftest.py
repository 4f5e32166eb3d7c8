"""
Pytest configuration and fixtures for beanctl tests.
"""
import sys
from pathlib import Path

import pytest

PYTHON_SRC = Path(__file__).resolve().parents[1]
if str(PYTHON_SRC) not in sys.path:
    sys.path.insert(0, str(PYTHON_SRC))

from bean_stubs import FakeTransport, seeded_transport  # noqa: E402


class ExitRecorder:
    """Stands in for process termination; remembers every requested code."""

    def __init__(self) -> None:
        self.codes = []

    def __call__(self, code: int) -> None:
        self.codes.append(code)


@pytest.fixture
def transport() -> FakeTransport:
    return seeded_transport()


@pytest.fixture
def exits() -> ExitRecorder:
    return ExitRecorder()
