"""Shared fixtures for the Errors & Echoes test suite."""

from datetime import datetime, timezone

import pytest

from echoes.core.host import HostModule, StaticHost, SystemInfo


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def fixed_now():
    return datetime(2024, 3, 15, 12, 30, tzinfo=timezone.utc)


@pytest.fixture
def host():
    """A host with three plugins, one of them inactive."""
    return StaticHost(
        version="12.331",
        system=SystemInfo(id="dnd5e", version="4.1.2"),
        modules=[
            HostModule(id="seasons-and-stars", version="2.3.0", authors=("rayners",)),
            HostModule(id="simple-weather", version="1.17.0", authors=("alvarocavalcanti",)),
            HostModule(id="disabled-thing", version="0.1.0", active=False),
        ],
        agent=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/126.0.0.0 Safari/537.36"
        ),
        scene="Tavern",
    )
