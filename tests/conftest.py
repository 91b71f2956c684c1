"""
Pytest fixtures for tariff simulator tests.
"""

import pytest
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from tariff_model.data import DESTATIS_2021_BRACKETS
from tariff_model.microsim import SimulationContext, generate_population
from tariff_model.tariff import REFERENCE_TARIFF_2021


# =============================================================================
# TARIFF FIXTURES
# =============================================================================

@pytest.fixture
def reference_params():
    """2021 reference tariff."""
    return REFERENCE_TARIFF_2021


# =============================================================================
# DATA FIXTURES
# =============================================================================

@pytest.fixture
def brackets():
    """Destatis 2021 bracket table."""
    return DESTATIS_2021_BRACKETS


@pytest.fixture(scope="session")
def population():
    """Synthetic population for the reference bracket table."""
    return generate_population(DESTATIS_2021_BRACKETS)


# =============================================================================
# ENGINE FIXTURES
# =============================================================================

@pytest.fixture(scope="session")
def context():
    """Calibrated simulation context (built once per test session)."""
    return SimulationContext.build()
