"""Shared fixtures for beadplate tests."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from PIL import Image

import beadplate
from beadplate import BeadColor


@pytest.fixture
def red_blue() -> list[BeadColor]:
    return [
        BeadColor.from_hex("red", "#FF0000", code="R1", name="Red"),
        BeadColor.from_hex("blue", "#0000FF", code="B1", name="Blue"),
    ]


@pytest.fixture
def basic_palette() -> list[BeadColor]:
    """Black, white, red, green, blue in that order."""
    return [
        BeadColor.from_hex("black", "#000000", code="K", name="Black"),
        BeadColor.from_hex("white", "#FFFFFF", code="W", name="White"),
        BeadColor.from_hex("red", "#FF0000", code="R", name="Red"),
        BeadColor.from_hex("green", "#00FF00", code="G", name="Green"),
        BeadColor.from_hex("blue", "#0000FF", code="B", name="Blue"),
    ]


@pytest.fixture
def quadrant_image() -> Image.Image:
    """8x8 RGBA image: red / green top, blue / transparent bottom."""
    img = Image.new("RGBA", (8, 8), (0, 0, 0, 0))
    img.paste((255, 0, 0, 255), (0, 0, 4, 4))
    img.paste((0, 255, 0, 255), (4, 0, 8, 4))
    img.paste((0, 0, 255, 255), (0, 4, 4, 8))
    return img


@pytest.fixture
def palette_file(tmp_path: Path) -> Path:
    path = tmp_path / "palette.json"
    path.write_text(json.dumps([
        {"id": "1", "hex_color": "#000000", "code": "K", "name": "Black"},
        {"id": "2", "hex_color": "#FFFFFF", "code": "W", "name": "White"},
        {"id": "3", "hex_color": "#FF0000", "code": "R", "name": "Red"},
    ]), encoding="utf-8")
    return path


@pytest.fixture
def default_palette() -> list[BeadColor]:
    return beadplate.load_palette(beadplate.DEFAULT_PALETTE_PATH)
