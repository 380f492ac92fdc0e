import random
import sys
from pathlib import Path

import pytest

# Ensure the repository root is importable when tests are invoked from arbitrary
# working directories (e.g., running a single file from within ``tests/``).
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from evoverse.config import SimConfig


@pytest.fixture()
def config():
    """Default world with a fixed seed."""
    return SimConfig(seed=1234)


@pytest.fixture()
def rng():
    return random.Random(99)
