"""Tests for the command line entry point."""

import argparse
import json

import pytest
from PIL import Image

from beadplate import CropRect, main, parse_crop


@pytest.fixture
def input_image(tmp_path, quadrant_image):
    path = tmp_path / "art.png"
    quadrant_image.save(path)
    return path


class TestParseCrop:
    def test_valid(self):
        assert parse_crop("1,2,30,40") == CropRect(1, 2, 30, 40)

    @pytest.mark.parametrize("value", ["1,2,3", "a,b,c,d", ""])
    def test_invalid(self, value):
        with pytest.raises(argparse.ArgumentTypeError):
            parse_crop(value)


class TestMain:
    def test_writes_outputs(self, tmp_path, input_image, palette_file, capsys):
        out = tmp_path / "out.png"
        plates_json = tmp_path / "plates.json"
        thumb = tmp_path / "thumb.png"
        code = main([str(input_image), "-o", str(out), "-p", str(palette_file),
                     "-W", "2", "-H", "2", "-d", "2", "-s", "10",
                     "--plates-json", str(plates_json),
                     "--thumbnail", str(thumb)])
        assert code == 0
        assert Image.open(out).size == (40, 40)
        assert Image.open(thumb).size == (200, 200)

        data = json.loads(plates_json.read_text(encoding="utf-8"))
        assert data["plate_dimension"] == 2
        assert data["total_beads"] == 12
        assert len(data["plates"]) == 4
        assert data["plates"][3]["beads"] == []

        stdout = capsys.readouterr().out
        assert "Color usage (2 colors, 12 beads total)" in stdout

    def test_default_output_name(self, input_image, palette_file):
        assert main([str(input_image), "-p", str(palette_file), "-d", "4"]) == 0
        assert (input_image.parent / "art_beads.png").exists()

    def test_missing_input(self, tmp_path, palette_file, capsys):
        code = main([str(tmp_path / "nope.png"), "-p", str(palette_file)])
        assert code == 1
        assert "Error:" in capsys.readouterr().out

    def test_bad_crop(self, input_image, palette_file, capsys):
        code = main([str(input_image), "-p", str(palette_file),
                     "--crop", "0,0,20,20"])
        assert code == 1
        assert "does not fit" in capsys.readouterr().out

    def test_bad_palette_color(self, tmp_path, input_image, capsys):
        palette = tmp_path / "bad.json"
        palette.write_text('[{"id": "1", "hex_color": "#XYZXYZ"}]',
                           encoding="utf-8")
        assert main([str(input_image), "-p", str(palette)]) == 1
        assert "Invalid color format" in capsys.readouterr().out

    def test_null_palette_color(self, tmp_path, input_image, capsys):
        palette = tmp_path / "null.json"
        palette.write_text('[{"id": "1", "hex_color": null}]', encoding="utf-8")
        assert main([str(input_image), "-p", str(palette)]) == 1
        assert "Invalid color format" in capsys.readouterr().out
