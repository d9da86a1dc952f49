# conftest.py
import logging

import matplotlib
import pytest


@pytest.fixture(autouse=True)
def mpl_test_backend():
    """Switch to a non-interactive backend for all tests."""
    matplotlib.use('Agg')


@pytest.fixture(autouse=True)
def quiet_numba_logs():
    logging.getLogger("numba").setLevel(logging.WARNING)
