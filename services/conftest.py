"""Shared pytest configuration for the analysis services."""

import pytest


def pytest_addoption(parser: pytest.Parser) -> None:
    """Add the flag that enables tests against a live engine host."""
    parser.addoption(
        "--integration",
        action="store_true",
        default=False,
        help="run integration tests (requires a reachable SSH engine host)",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers", "integration: test talks to a real remote engine over SSH"
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip integration tests unless --integration is given."""
    if config.getoption("--integration"):
        return

    skip_integration = pytest.mark.skip(reason="need --integration option to run")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)
