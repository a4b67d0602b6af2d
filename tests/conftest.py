"""
Shared fixtures for the bobina ledger tests.
"""

import pytest

from services.registry import build_services


def reel_data(**overrides):
    """Minimal valid add-action payload for a reel."""
    data = {
        "code": "BOB-001",
        "material": "PEBD",
        "color": "Transparente",
        "thickness": 0.05,
        "width": 100,
        "weight": 25.5,
        "quantity_available": 15,
        "priority": "alta",
        "location": "A1-02",
        "supplier": "Plastinova Ltda",
    }
    data.update(overrides)
    return data


@pytest.fixture
def services():
    """Freshly wired stores, ledger and coordinator (hard delete off)."""
    return build_services()


@pytest.fixture
def reel(services):
    """Reel R1 with 15 available, 0 used."""
    return services.reels.create(reel_data())


@pytest.fixture
def machine(services):
    """Machine M1, no reel mounted."""
    return services.machines.create({"name": "Extrusora 1"})


@pytest.fixture
def second_machine(services):
    return services.machines.create({"name": "Extrusora 2"})
