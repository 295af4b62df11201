"""Bead plate pattern converter - beadplate

Converts images into bead grids matched against a fixed bead palette, splits
the grid into square plates and renders previews and thumbnails.
"""

import argparse
import base64
import io
import json
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path

import numpy as np
from PIL import Image, ImageDraw

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
ALPHA_THRESHOLD = 128
DEFAULT_BG_TOLERANCE = 240
DEFAULT_PLATE_DIMENSION = 29
BEAD_RADIUS_RATIO = 0.45
PREVIEW_MAX_SIZE = 400
PREVIEW_MAX_SCALE = 8
THUMBNAIL_MAX_SIZE = 200
MAX_CANVAS_SIZE = 16384
TOP_COLORS = 10

PREVIEW_BG = (245, 245, 245)
PLATES_BG = (255, 255, 255)
MISSING_COLOR = (204, 204, 204)  # bead whose color id is not in the palette
BEAD_OUTLINE = (204, 204, 204)
EMPTY_OUTLINE = (232, 232, 232)
SEPARATOR_COLOR = (170, 170, 170)

DEFAULT_PALETTE_PATH = Path(__file__).parent / "colors" / "default.json"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class PatternError(Exception):
    """Base exception for all conversion errors."""


class InvalidColorFormat(PatternError):
    """Raised when a palette color string is not '#RRGGBB'."""

    def __init__(self, value: str) -> None:
        super().__init__(f"Invalid color format: {value!r}")
        self.value = value


class PaletteError(PatternError):
    """Raised when a palette cannot be used for matching."""


class EmptyPalette(PaletteError):
    """Raised when matching is attempted without any palette colors."""

    def __init__(self) -> None:
        super().__init__("Palette has no colors")


class InvalidCropRect(PatternError):
    """Raised when a crop rectangle is not inside the source image."""

    def __init__(self, rect: "CropRect", image_size: tuple[int, int]) -> None:
        super().__init__(
            f"Crop {rect.x},{rect.y} {rect.width}x{rect.height} does not fit "
            f"image {image_size[0]}x{image_size[1]}")
        self.rect = rect
        self.image_size = image_size


class OutOfBoundsBead(PatternError):
    """Raised when a bead lies outside the plate grid it is assigned to."""

    def __init__(self, bead: "BeadPixel", extent: tuple[int, int]) -> None:
        super().__init__(
            f"Bead at ({bead.row}, {bead.col}) outside "
            f"{extent[0]}x{extent[1]} grid")
        self.bead = bead
        self.extent = extent


class RenderFailure(PatternError):
    """Raised when a render or its encoding cannot be produced."""


# ---------------------------------------------------------------------------
# Colors
# ---------------------------------------------------------------------------

_HEX_DIGITS = set("0123456789abcdefABCDEF")


def hex_to_rgb(h: str) -> tuple[int, int, int]:
    """Convert '#RRGGBB' (or 'RRGGBB') to (R, G, B)."""
    if not isinstance(h, str):
        raise InvalidColorFormat(h)
    s = h.strip()
    if s.startswith("#"):
        s = s[1:]
    if len(s) != 6 or not set(s) <= _HEX_DIGITS:
        raise InvalidColorFormat(h)
    return int(s[0:2], 16), int(s[2:4], 16), int(s[4:6], 16)


def rgb_to_hex(rgb: tuple[int, int, int]) -> str:
    return "#{:02X}{:02X}{:02X}".format(*rgb)


def color_distance(c1: tuple[int, int, int], c2: tuple[int, int, int]) -> float:
    """Euclidean distance in RGB space (no perceptual weighting)."""
    return math.sqrt((c1[0] - c2[0]) ** 2
                     + (c1[1] - c2[1]) ** 2
                     + (c1[2] - c2[2]) ** 2)


@dataclass(frozen=True)
class BeadColor:
    """One physical bead color of the palette."""

    id: str
    rgb: tuple[int, int, int]
    code: str = ""
    name: str = ""

    @classmethod
    def from_hex(cls, id: str, hex_color: str, code: str = "",
                 name: str = "") -> "BeadColor":
        return cls(id=id, rgb=hex_to_rgb(hex_color), code=code, name=name)

    @property
    def hex_color(self) -> str:
        return rgb_to_hex(self.rgb)


def load_palette(json_path: str | Path) -> list[BeadColor]:
    """Load bead colors from a JSON file, keeping file order.

    Two layouts are accepted:
      - a list of {"id", "hex_color", "name", "code"} objects
        (optionally wrapped as {"colors": [...]})
      - a brand file {"brand", "label_to_hex", "transparent"}, where each
        label is both id and code; transparent beads are skipped.
    """
    with open(json_path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise PaletteError(f"Invalid palette file {json_path}: {e}") from e

    palette: list[BeadColor] = []
    if isinstance(data, dict) and "label_to_hex" in data:
        transparent = set(data.get("transparent", []))
        for label, hexval in data["label_to_hex"].items():
            if label in transparent:
                continue
            palette.append(BeadColor.from_hex(label, hexval, code=label,
                                              name=label))
    else:
        entries = data.get("colors", []) if isinstance(data, dict) else data
        for entry in entries:
            try:
                palette.append(BeadColor.from_hex(
                    str(entry["id"]), entry["hex_color"],
                    code=entry.get("code", ""), name=entry.get("name", "")))
            except (KeyError, TypeError) as e:
                raise PaletteError(f"Palette entry missing {e}: {entry}") from e

    seen: set[str] = set()
    for color in palette:
        if color.id in seen:
            raise PaletteError(f"Duplicate color id: {color.id}")
        seen.add(color.id)
    logger.debug("Loaded %d bead colors from %s", len(palette), json_path)
    return palette


# ---------------------------------------------------------------------------
# Color matching
# ---------------------------------------------------------------------------

def match_color(r: int, g: int, b: int, a: int, palette: list[BeadColor],
                remove_background: bool = False,
                bg_tolerance: int = DEFAULT_BG_TOLERANCE) -> str | None:
    """Return the id of the nearest palette color, or None for no bead.

    Pixels more than half transparent are never beaded. Near-white pixels are
    treated as background only when remove_background is set. On an exact
    distance tie the earlier palette entry wins.
    """
    if not palette:
        raise EmptyPalette()
    if a < ALPHA_THRESHOLD:
        return None
    if remove_background and r > bg_tolerance and g > bg_tolerance \
            and b > bg_tolerance:
        return None

    pixel = (r, g, b)
    nearest_id = None
    min_dist = math.inf
    for color in palette:
        dist = color_distance(pixel, color.rgb)
        if dist < min_dist:
            min_dist = dist
            nearest_id = color.id
    return nearest_id


def palette_rgb(palette: list[BeadColor]) -> np.ndarray:
    """Palette colors as an (N, 3) int64 array, in palette order."""
    return np.array([c.rgb for c in palette], dtype=np.int64).reshape(-1, 3)


def match_pixels(rgba: np.ndarray, palette: list[BeadColor],
                 remove_background: bool = False,
                 bg_tolerance: int = DEFAULT_BG_TOLERANCE) -> np.ndarray:
    """Vectorized match_color over an (H, W, 4) array.

    Returns an (H, W) int array of palette indices, -1 where no bead is
    placed. Rows are matched one at a time to bound memory to W x N.
    """
    if not palette:
        raise EmptyPalette()
    pixels = np.asarray(rgba, dtype=np.int64)
    if pixels.ndim != 3 or pixels.shape[2] != 4:
        raise ValueError(f"Expected (H, W, 4) RGBA array, got {pixels.shape}")
    pal = palette_rgb(palette)
    h, w = pixels.shape[:2]
    indices = np.empty((h, w), dtype=np.int32)

    for y in range(h):
        row = pixels[y, :, :3]
        # Squared distances are exact integers, so argmin keeps first-wins ties
        dists = ((row[:, np.newaxis, :] - pal[np.newaxis, :, :]) ** 2).sum(axis=-1)
        indices[y] = dists.argmin(axis=1)

    empty = pixels[..., 3] < ALPHA_THRESHOLD
    if remove_background:
        empty |= np.all(pixels[..., :3] > bg_tolerance, axis=-1)
    indices[empty] = -1
    return indices


# ---------------------------------------------------------------------------
# Crop
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CropRect:
    x: int
    y: int
    width: int
    height: int


def full_crop(image: Image.Image) -> CropRect:
    return CropRect(0, 0, image.width, image.height)


def validate_crop(rect: CropRect, image_size: tuple[int, int]) -> None:
    """Raise InvalidCropRect unless rect lies fully inside image_size."""
    img_w, img_h = image_size
    if (rect.width <= 0 or rect.height <= 0 or rect.x < 0 or rect.y < 0
            or rect.x + rect.width > img_w or rect.y + rect.height > img_h):
        raise InvalidCropRect(rect, image_size)


def crop_image(image: Image.Image, rect: CropRect) -> Image.Image:
    """Cut rect out of image. Out-of-bounds rects are rejected, not clamped."""
    validate_crop(rect, image.size)
    return image.crop((rect.x, rect.y, rect.x + rect.width,
                       rect.y + rect.height))


def auto_plate_height(rect: CropRect, plate_width: int,
                      plate_dimension: int) -> int:
    """Plate rows that keep the crop's aspect ratio for plate_width columns."""
    total_width = plate_width * plate_dimension
    ratio = rect.height / rect.width
    # Halves round up, not to even
    return max(1, math.floor(total_width * ratio / plate_dimension + 0.5))


# ---------------------------------------------------------------------------
# Quantization
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BeadPixel:
    row: int
    col: int
    color_id: str | None


@dataclass
class QuantizeResult:
    """Flat bead grid in global coordinates plus usage statistics."""

    beads: list[BeadPixel]
    color_stats: dict[str, int]
    total_beads: int
    width: int
    height: int


def quantize(source: Image.Image, target_width: int, target_height: int,
             palette: list[BeadColor], remove_background: bool = False,
             bg_tolerance: int = DEFAULT_BG_TOLERANCE) -> QuantizeResult:
    """Resample source to the bead grid and match every pixel to the palette.

    Resampling is nearest-neighbor so that only colors present in the source
    reach the matcher. Beads are emitted in row-major order.
    """
    if target_width <= 0 or target_height <= 0:
        raise ValueError(
            f"Target size must be positive, got {target_width}x{target_height}")
    if not palette:
        raise EmptyPalette()

    scaled = source.convert("RGBA").resize(
        (target_width, target_height), Image.Resampling.NEAREST)
    indices = match_pixels(np.asarray(scaled), palette,
                           remove_background, bg_tolerance)

    ids = [c.id for c in palette]
    beads: list[BeadPixel] = []
    color_stats: dict[str, int] = {}
    rows, cols = np.nonzero(indices >= 0)
    for y, x in zip(rows.tolist(), cols.tolist()):
        color_id = ids[indices[y, x]]
        beads.append(BeadPixel(row=y, col=x, color_id=color_id))
        color_stats[color_id] = color_stats.get(color_id, 0) + 1

    logger.debug("Quantized to %dx%d: %d beads, %d colors",
                 target_width, target_height, len(beads), len(color_stats))
    return QuantizeResult(beads=beads, color_stats=color_stats,
                          total_beads=len(beads), width=target_width,
                          height=target_height)


def top_colors(color_stats: dict[str, int],
               limit: int = TOP_COLORS) -> list[tuple[str, int]]:
    """Most used colors first; equal counts keep first-seen order."""
    return sorted(color_stats.items(), key=lambda x: -x[1])[:limit]


# ---------------------------------------------------------------------------
# Plates
# ---------------------------------------------------------------------------

PlateGrid = dict[tuple[int, int], list[BeadPixel]]


def _check_plate_args(plate_width: int, plate_height: int,
                      plate_dimension: int) -> None:
    if plate_width <= 0 or plate_height <= 0 or plate_dimension <= 0:
        raise ValueError(
            f"Plate layout must be positive, got {plate_width}x{plate_height} "
            f"plates of {plate_dimension}")


def split_into_plates(beads: list[BeadPixel], plate_width: int,
                      plate_height: int, plate_dimension: int,
                      strict: bool = False) -> PlateGrid:
    """Partition global beads into plates with plate-local coordinates.

    Every (plate_row, plate_col) slot is present, empty or not. Beads beyond
    plate_width x plate_height plates are dropped with a warning, or raise
    OutOfBoundsBead when strict is set.
    """
    _check_plate_args(plate_width, plate_height, plate_dimension)
    plates: PlateGrid = {
        (r, c): [] for r in range(plate_height) for c in range(plate_width)
    }

    dropped = 0
    for bead in beads:
        plate_row, local_row = divmod(bead.row, plate_dimension)
        plate_col, local_col = divmod(bead.col, plate_dimension)
        slot = plates.get((plate_row, plate_col))
        if slot is None:
            if strict:
                raise OutOfBoundsBead(bead, (plate_height * plate_dimension,
                                             plate_width * plate_dimension))
            dropped += 1
            continue
        slot.append(BeadPixel(row=local_row, col=local_col,
                              color_id=bead.color_id))

    if dropped:
        logger.warning("Dropped %d beads outside %dx%d plates of %d",
                       dropped, plate_width, plate_height, plate_dimension)
    return plates


def assemble_plates(plates: PlateGrid,
                    plate_dimension: int) -> list[BeadPixel]:
    """Map plate-local beads back to global coordinates (row-major order)."""
    if plate_dimension <= 0:
        raise ValueError(f"Plate dimension must be positive, got {plate_dimension}")
    beads: list[BeadPixel] = []
    for (plate_row, plate_col), local_beads in sorted(plates.items()):
        for bead in local_beads:
            if not (0 <= bead.row < plate_dimension
                    and 0 <= bead.col < plate_dimension):
                raise OutOfBoundsBead(bead, (plate_dimension, plate_dimension))
            beads.append(BeadPixel(
                row=plate_row * plate_dimension + bead.row,
                col=plate_col * plate_dimension + bead.col,
                color_id=bead.color_id))
    beads.sort(key=lambda b: (b.row, b.col))
    return beads


def plate_records(plates: PlateGrid, plate_width: int,
                  plate_height: int) -> list[dict]:
    """One persistence record per plate slot, row-major."""
    records = []
    for r in range(plate_height):
        for c in range(plate_width):
            records.append({
                "row_index": r,
                "column_index": c,
                "beads": [{"row": b.row, "col": b.col, "colorId": b.color_id}
                          for b in plates.get((r, c), [])],
            })
    return records


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

RGB = tuple[int, int, int]


@dataclass(frozen=True)
class Circle:
    cx: float
    cy: float
    radius: float
    fill: RGB | None
    outline: RGB | None = None
    width: int = 0


@dataclass(frozen=True)
class Rect:
    x0: float
    y0: float
    x1: float
    y1: float
    fill: RGB


@dataclass(frozen=True)
class Line:
    x0: float
    y0: float
    x1: float
    y1: float
    fill: RGB
    width: int = 1


@dataclass(frozen=True)
class DrawPlan:
    """Immutable list of draw calls; each call carries its own style."""

    width: int
    height: int
    background: RGB
    ops: tuple = field(default_factory=tuple)


def fit_scale(grid_width: int, grid_height: int, max_size: int,
              max_scale: float | None = None) -> float:
    """Largest cell size keeping the grid within max_size pixels."""
    if grid_width <= 0 or grid_height <= 0:
        raise RenderFailure(f"Cannot fit a {grid_width}x{grid_height} grid")
    scale = min(max_size / grid_width, max_size / grid_height)
    if max_scale is not None:
        scale = min(scale, max_scale)
    return scale


def plan_beads(beads: list[BeadPixel], grid_width: int, grid_height: int,
               palette: list[BeadColor], scale: float, *,
               background: RGB = PREVIEW_BG,
               plate_dimension: int | None = None,
               bead_outline: RGB | None = None,
               empty_outline: RGB | None = None,
               square: bool = False) -> DrawPlan:
    """Lay out a bead grid as draw calls.

    Beads are circles of radius 0.45 * scale centered in their cell, or
    filled cells (at least 1 px) when square is set. Plate separators are
    drawn at every interior multiple of plate_dimension cells.
    """
    if scale <= 0:
        raise RenderFailure(f"Scale must be positive, got {scale}")
    width = math.ceil(grid_width * scale)
    height = math.ceil(grid_height * scale)
    if not (1 <= width <= MAX_CANVAS_SIZE and 1 <= height <= MAX_CANVAS_SIZE):
        raise RenderFailure(f"Unsupported canvas size {width}x{height}")

    colors = {c.id: c.rgb for c in palette}
    radius = scale * BEAD_RADIUS_RATIO
    ops: list = []

    if empty_outline is not None:
        filled = {(b.row, b.col) for b in beads if b.color_id is not None}
        for r in range(grid_height):
            for c in range(grid_width):
                if (r, c) not in filled:
                    ops.append(Circle(c * scale + scale / 2,
                                      r * scale + scale / 2, radius,
                                      fill=None, outline=empty_outline,
                                      width=1))

    for bead in beads:
        if bead.color_id is None:
            continue
        rgb = colors.get(bead.color_id, MISSING_COLOR)
        if square:
            # Integer cell edges so neighbouring cells share a boundary
            x0 = math.floor(bead.col * scale)
            y0 = math.floor(bead.row * scale)
            x1 = max(math.floor((bead.col + 1) * scale), x0 + 1)
            y1 = max(math.floor((bead.row + 1) * scale), y0 + 1)
            ops.append(Rect(x0, y0, x1, y1, fill=rgb))
        else:
            ops.append(Circle(bead.col * scale + scale / 2,
                              bead.row * scale + scale / 2, radius,
                              fill=rgb, outline=bead_outline,
                              width=1 if bead_outline else 0))

    if plate_dimension:
        for c in range(plate_dimension, grid_width, plate_dimension):
            x = c * scale
            ops.append(Line(x, 0, x, height, fill=SEPARATOR_COLOR, width=2))
        for r in range(plate_dimension, grid_height, plate_dimension):
            y = r * scale
            ops.append(Line(0, y, width, y, fill=SEPARATOR_COLOR, width=2))

    return DrawPlan(width=width, height=height, background=background,
                    ops=tuple(ops))


def paint(plan: DrawPlan) -> Image.Image:
    """Replay a DrawPlan onto a fresh RGB image."""
    img = Image.new("RGB", (plan.width, plan.height), plan.background)
    draw = ImageDraw.Draw(img)
    for op in plan.ops:
        if isinstance(op, Circle):
            draw.ellipse([op.cx - op.radius, op.cy - op.radius,
                          op.cx + op.radius, op.cy + op.radius],
                         fill=op.fill, outline=op.outline, width=op.width)
        elif isinstance(op, Rect):
            # PIL rectangles include x1/y1, so shrink by one pixel
            x0, y0 = math.floor(op.x0), math.floor(op.y0)
            x1 = max(math.floor(op.x1), x0 + 1)
            y1 = max(math.floor(op.y1), y0 + 1)
            draw.rectangle([x0, y0, x1 - 1, y1 - 1], fill=op.fill)
        elif isinstance(op, Line):
            draw.line([(op.x0, op.y0), (op.x1, op.y1)], fill=op.fill,
                      width=op.width)
        else:
            raise RenderFailure(f"Unknown draw call: {op!r}")
    return img


def render(beads: list[BeadPixel], grid_width: int, grid_height: int,
           palette: list[BeadColor], scale: float, **style) -> Image.Image:
    """Render a bead grid at the given scale. See plan_beads for style."""
    return paint(plan_beads(beads, grid_width, grid_height, palette, scale,
                            **style))


def render_preview(beads: list[BeadPixel], grid_width: int, grid_height: int,
                   palette: list[BeadColor]) -> Image.Image:
    """Conversion preview: at most 400 px, cells at most 8 px."""
    scale = fit_scale(grid_width, grid_height, PREVIEW_MAX_SIZE,
                      PREVIEW_MAX_SCALE)
    return render(beads, grid_width, grid_height, palette, scale,
                  background=PREVIEW_BG)


def render_thumbnail(beads: list[BeadPixel], grid_width: int,
                     grid_height: int,
                     palette: list[BeadColor]) -> Image.Image:
    scale = fit_scale(grid_width, grid_height, THUMBNAIL_MAX_SIZE)
    return render(beads, grid_width, grid_height, palette, scale,
                  background=PREVIEW_BG, square=True)


def thumbnail_data_uri(beads: list[BeadPixel], grid_width: int,
                       grid_height: int, palette: list[BeadColor]) -> str:
    """PNG thumbnail encoded as a data URI."""
    img = render_thumbnail(beads, grid_width, grid_height, palette)
    buf = io.BytesIO()
    try:
        img.save(buf, format="PNG")
    except (OSError, ValueError) as e:
        raise RenderFailure(f"Could not encode thumbnail: {e}") from e
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")


def render_plates(plates: PlateGrid, plate_width: int, plate_height: int,
                  plate_dimension: int, palette: list[BeadColor],
                  scale: float) -> Image.Image:
    """Full pattern view of a tiled grid with plate separators."""
    _check_plate_args(plate_width, plate_height, plate_dimension)
    beads = assemble_plates(plates, plate_dimension)
    return render(beads, plate_width * plate_dimension,
                  plate_height * plate_dimension, palette, scale,
                  background=PLATES_BG, plate_dimension=plate_dimension,
                  bead_outline=BEAD_OUTLINE, empty_outline=EMPTY_OUTLINE)


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

@dataclass
class ConversionSettings:
    """Plate layout and matching options for one conversion."""

    plate_width: int = 1
    plate_height: int | None = None  # None: follow the crop's aspect ratio
    plate_dimension: int = DEFAULT_PLATE_DIMENSION
    remove_background: bool = False
    bg_tolerance: int = DEFAULT_BG_TOLERANCE
    strict_tiling: bool = False


@dataclass
class Conversion:
    settings: ConversionSettings
    crop: CropRect
    plate_height: int
    quantized: QuantizeResult
    plates: PlateGrid

    @property
    def grid_width(self) -> int:
        return self.settings.plate_width * self.settings.plate_dimension

    @property
    def grid_height(self) -> int:
        return self.plate_height * self.settings.plate_dimension

    def records(self) -> list[dict]:
        return plate_records(self.plates, self.settings.plate_width,
                             self.plate_height)


def convert_image(image: Image.Image, palette: list[BeadColor],
                  settings: ConversionSettings,
                  crop: CropRect | None = None) -> Conversion:
    """Crop, quantize and tile an image into plates."""
    if crop is None:
        crop = full_crop(image)
    validate_crop(crop, image.size)
    if not palette:
        raise EmptyPalette()

    plate_height = settings.plate_height
    if plate_height is None:
        plate_height = auto_plate_height(crop, settings.plate_width,
                                         settings.plate_dimension)
    _check_plate_args(settings.plate_width, plate_height,
                      settings.plate_dimension)
    target_width = settings.plate_width * settings.plate_dimension
    target_height = plate_height * settings.plate_dimension

    logger.debug("Converting crop %s to %dx%d beads", crop, target_width,
                 target_height)
    source = crop_image(image, crop)
    quantized = quantize(source, target_width, target_height, palette,
                         settings.remove_background, settings.bg_tolerance)
    plates = split_into_plates(quantized.beads, settings.plate_width,
                               plate_height, settings.plate_dimension,
                               strict=settings.strict_tiling)
    return Conversion(settings=settings, crop=crop, plate_height=plate_height,
                      quantized=quantized, plates=plates)


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def parse_crop(value: str) -> CropRect:
    """Parse 'X,Y,W,H' into a CropRect."""
    parts = value.split(",")
    if len(parts) != 4:
        raise argparse.ArgumentTypeError(f"Crop must be X,Y,W,H, got {value!r}")
    try:
        x, y, w, h = (int(p) for p in parts)
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"Crop values must be integers, got {value!r}") from None
    return CropRect(x, y, w, h)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Bead plate pattern converter")
    parser.add_argument("input", help="Input image path")
    parser.add_argument("-o", "--output", default=None,
                        help="Output image path (default: <input>_beads.png)")
    parser.add_argument("-p", "--palette", default=str(DEFAULT_PALETTE_PATH),
                        help="Palette JSON file (default: colors/default.json)")
    parser.add_argument("-W", "--plates-wide", type=int, default=1,
                        help="Number of plates across (default: 1)")
    parser.add_argument("-H", "--plates-high", type=int, default=None,
                        help="Number of plates down (default: from crop aspect ratio)")
    parser.add_argument("-d", "--dimension", type=int,
                        default=DEFAULT_PLATE_DIMENSION,
                        help=f"Beads per plate side (default: {DEFAULT_PLATE_DIMENSION})")
    parser.add_argument("--crop", type=parse_crop, default=None,
                        help="Crop rectangle X,Y,W,H in image pixels (default: whole image)")
    parser.add_argument("--remove-background", action="store_true",
                        help="Leave near-white pixels empty")
    parser.add_argument("--bg-tolerance", type=int, default=DEFAULT_BG_TOLERANCE,
                        help=f"Channel level above which a pixel counts as background (default: {DEFAULT_BG_TOLERANCE})")
    parser.add_argument("--strict", action="store_true",
                        help="Fail instead of dropping beads outside the plates")
    parser.add_argument("-s", "--scale", type=float, default=20.0,
                        help="Output cell size in pixels (default: 20)")
    parser.add_argument("--plates-json", default=None,
                        help="Also write one record per plate to this JSON file")
    parser.add_argument("--thumbnail", default=None,
                        help="Also write a PNG thumbnail to this path")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Show debug log messages")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format="%(levelname)s %(name)s: %(message)s")

    input_path = Path(args.input)
    if args.output is None:
        output_path = input_path.parent / f"{input_path.stem}_beads.png"
    else:
        output_path = Path(args.output)

    settings = ConversionSettings(
        plate_width=args.plates_wide, plate_height=args.plates_high,
        plate_dimension=args.dimension,
        remove_background=args.remove_background,
        bg_tolerance=args.bg_tolerance, strict_tiling=args.strict)

    try:
        # 1. Load palette
        print(f"Loading palette: {args.palette}")
        palette = load_palette(args.palette)
        print(f"  {len(palette)} bead colors available")

        # 2. Load image
        print(f"Loading image: {input_path}")
        img = Image.open(input_path)
        img.load()
        print(f"  Image size: {img.width}x{img.height}")

        # 3. Convert
        print("Converting to beads...")
        conv = convert_image(img, palette, settings, crop=args.crop)
        print(f"  Plates: {settings.plate_width}x{conv.plate_height} "
              f"of {settings.plate_dimension}x{settings.plate_dimension}")
        print(f"  Grid: {conv.grid_width}x{conv.grid_height} beads")

        # 4. Render
        print("Rendering output...")
        result = render_plates(conv.plates, settings.plate_width,
                               conv.plate_height, settings.plate_dimension,
                               palette, args.scale)
        result.save(str(output_path))
        print(f"Saved: {output_path}")

        if args.plates_json:
            with open(args.plates_json, "w", encoding="utf-8") as f:
                json.dump({
                    "plate_width": settings.plate_width,
                    "plate_height": conv.plate_height,
                    "plate_dimension": settings.plate_dimension,
                    "total_beads": conv.quantized.total_beads,
                    "plates": conv.records(),
                }, f, indent=2)
            print(f"Saved: {args.plates_json}")

        if args.thumbnail:
            thumb = render_thumbnail(conv.quantized.beads, conv.grid_width,
                                     conv.grid_height, palette)
            thumb.save(args.thumbnail)
            print(f"Saved: {args.thumbnail}")
    except (PatternError, OSError) as e:
        print(f"Error: {e}")
        return 1

    # Summary
    by_id = {c.id: c for c in palette}
    stats = conv.quantized.color_stats
    print(f"\nColor usage ({len(stats)} colors, "
          f"{conv.quantized.total_beads} beads total):")
    for color_id, count in top_colors(stats, limit=len(stats)):
        color = by_id[color_id]
        print(f"  {color.code or color.id:>6s}: {count:5d}  {color.hex_color}  {color.name}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
