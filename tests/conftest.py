"""Shared fixtures."""

import shutil

import pytest

from tests.fakes import FakeLayoutOracle

requires_dot = pytest.mark.skipif(shutil.which("dot") is None, reason="Graphviz 'dot' not installed")


@pytest.fixture
def layout_oracle():
    return FakeLayoutOracle()
