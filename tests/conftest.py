"""Shared pytest configuration and fixtures for the helper test suite."""

import sys
from pathlib import Path

import pytest

# Ensure the project root is in the path for imports
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "hardware: mark test as requiring a physical sensor or microphone"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )
    config.addinivalue_line(
        "markers", "asyncio: mark test as async"
    )


def pytest_addoption(parser):
    """Add custom command-line options."""
    parser.addoption(
        "--run-hardware",
        action="store_true",
        default=False,
        help="Run tests that require physical hardware",
    )


def pytest_collection_modifyitems(config, items):
    """Skip hardware tests unless --run-hardware is specified."""
    if config.getoption("--run-hardware"):
        return

    skip_hardware = pytest.mark.skip(reason="Need --run-hardware option to run")
    for item in items:
        if "hardware" in item.keywords:
            item.add_marker(skip_hardware)


# =============================================================================
# Shared Fixtures
# =============================================================================

@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def call_log():
    """Shared call recorder so ordering across two fake sensors can be asserted."""
    from tests.infrastructure.mocks.sensor_mocks import CallLog
    return CallLog()


@pytest.fixture
def sensor_a(call_log):
    """Fake sensor 'A' with the standard [-27, 27] elevation range."""
    from tests.infrastructure.mocks.sensor_mocks import FakeSensor
    return FakeSensor("A", call_log)


@pytest.fixture
def sensor_b(call_log):
    """Fake sensor 'B' sharing sensor A's call log."""
    from tests.infrastructure.mocks.sensor_mocks import FakeSensor
    return FakeSensor("B", call_log)


@pytest.fixture
def hub():
    """Fresh notification hub."""
    from kinect_helper.services import NotificationHub
    return NotificationHub()
