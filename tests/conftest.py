import io

import pytest

import bramble


@pytest.fixture
def world():
    """Empty world."""
    return bramble.World()


@pytest.fixture
def arena():
    """Empty branch arena."""
    return bramble.BranchArena()


@pytest.fixture
def executor(world):
    """Executor bound to the world fixture with an in-memory terminal."""
    return bramble.Executor(world, stdin=io.StringIO(), stdout=io.StringIO())
