"""
Pytest configuration and shared fixtures.
"""

import tempfile
from pathlib import Path

import pytest

from openiron.core.geometry import PolygonSet


@pytest.fixture
def temp_dir():
    """Provide a temporary directory that is cleaned up after the test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_config_dir(temp_dir):
    """Create a sample configuration directory with one ironing profile."""
    config_dir = temp_dir / "config"
    (config_dir / "ironing").mkdir(parents=True)

    profile = """
name: "Test Profile"

ironing:
  enabled: true
  pattern: raster
  line_spacing: 0.2
  flow_ratio: 0.15
  monotonic: true

line:
  line_width: 0.45
  speed: 25.0
"""
    (config_dir / "ironing" / "test_profile.yaml").write_text(profile)
    return config_dir


@pytest.fixture
def square():
    """10x10 mm square at the origin."""
    return PolygonSet.rectangle(0, 0, 10, 10)


@pytest.fixture
def center_square():
    """4x4 mm square centred in the 10x10 square."""
    return PolygonSet.rectangle(3, 3, 7, 7)


@pytest.fixture
def annulus():
    """10x10 mm square with a 2x2 mm hole in the middle (hole is clockwise)."""
    return PolygonSet.from_polygons([
        [(0, 0), (10, 0), (10, 10), (0, 10)],
        [(4, 4), (4, 6), (6, 6), (6, 4)],
    ])
