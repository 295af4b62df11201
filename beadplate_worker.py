"""Background conversion for Qt front ends - beadplate worker

Runs the beadplate pipeline on a QThread so the UI can show a busy state
before the matching pass starts.
"""

import typing
from pathlib import Path

from PIL import Image
from PySide6.QtCore import QObject, QThread, Signal, Slot

import beadplate


# ---------------------------------------------------------------------------
# PatternEngine - current inputs and last result
# ---------------------------------------------------------------------------

class PatternEngine:
    """Holds the conversion inputs and recomputes everything on demand."""

    def __init__(self, palette_path: str | Path = beadplate.DEFAULT_PALETTE_PATH) -> None:
        self.palette_path = Path(palette_path)
        self.palette: list[beadplate.BeadColor] = []
        self.image: Image.Image | None = None
        self.crop: beadplate.CropRect | None = None
        self.settings = beadplate.ConversionSettings()
        self.conversion: beadplate.Conversion | None = None

    def set_image(self, image: Image.Image,
                  crop: beadplate.CropRect | None = None) -> None:
        self.image = image
        self.crop = crop
        self.conversion = None

    def compute(self, progress_cb: None | typing.Callable = None) -> dict:
        """Run the whole pipeline. Returns a result dict for display."""

        def _progress(msg: str) -> None:
            if progress_cb:
                progress_cb(msg)

        if self.image is None:
            raise ValueError("No image loaded")

        _progress("Loading palette...")
        self.palette = beadplate.load_palette(self.palette_path)

        _progress("Matching bead colors...")
        conv = beadplate.convert_image(self.image, self.palette,
                                       self.settings, crop=self.crop)
        self.conversion = conv

        _progress("Rendering preview...")
        beads = conv.quantized.beads
        preview = beadplate.render_preview(beads, conv.grid_width,
                                           conv.grid_height, self.palette)
        thumbnail = beadplate.thumbnail_data_uri(beads, conv.grid_width,
                                                 conv.grid_height, self.palette)

        _progress("Done")
        return {
            "n_beads": conv.quantized.total_beads,
            "n_colors": len(conv.quantized.color_stats),
            "top_colors": beadplate.top_colors(conv.quantized.color_stats),
            "plate_width": self.settings.plate_width,
            "plate_height": conv.plate_height,
            "preview": preview,
            "thumbnail": thumbnail,
        }


# ---------------------------------------------------------------------------
# ConvertWorker - background thread
# ---------------------------------------------------------------------------

class ConvertWorker(QObject):
    progress = Signal(str)
    finished = Signal(dict)

    def __init__(self, engine: PatternEngine):
        super().__init__()
        self.engine = engine

    @Slot()
    def run(self) -> None:
        try:
            results = self.engine.compute(progress_cb=self.progress.emit)
        except (beadplate.PatternError, OSError, ValueError) as e:
            results = {"error": str(e)}
        self.finished.emit(results)


def start_conversion(engine: PatternEngine,
                     on_finished: typing.Callable[[dict], None],
                     on_progress: None | typing.Callable[[str], None] = None,
                     ) -> tuple[QThread, ConvertWorker]:
    """Start a conversion on a new QThread and return (thread, worker).

    The caller must keep both references alive until finished fires.
    """
    thread = QThread()
    worker = ConvertWorker(engine)
    worker.moveToThread(thread)
    thread.started.connect(worker.run)
    if on_progress is not None:
        worker.progress.connect(on_progress)
    worker.finished.connect(on_finished)
    worker.finished.connect(thread.quit)
    thread.start()
    return thread, worker
