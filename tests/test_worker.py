"""Tests for the Qt background conversion worker."""

import pytest

QtCore = pytest.importorskip("PySide6.QtCore")

from beadplate import ConversionSettings, CropRect  # noqa: E402
from beadplate_worker import ConvertWorker, PatternEngine, start_conversion  # noqa: E402


@pytest.fixture(scope="module")
def qapp():
    app = QtCore.QCoreApplication.instance()
    if app is None:
        app = QtCore.QCoreApplication([])
    return app


@pytest.fixture
def engine(palette_file, quadrant_image):
    eng = PatternEngine(palette_file)
    eng.settings = ConversionSettings(plate_width=2, plate_height=2,
                                      plate_dimension=2)
    eng.set_image(quadrant_image)
    return eng


class TestPatternEngine:
    def test_compute(self, engine):
        messages = []
        results = engine.compute(progress_cb=messages.append)
        assert results["n_beads"] == 12
        assert results["n_colors"] == 2
        assert results["plate_height"] == 2
        assert results["preview"].size == (32, 32)
        assert results["thumbnail"].startswith("data:image/png;base64,")
        assert messages[-1] == "Done"
        assert engine.conversion is not None

    def test_no_image(self, palette_file):
        with pytest.raises(ValueError):
            PatternEngine(palette_file).compute()

    def test_set_image_clears_result(self, engine, quadrant_image):
        engine.compute()
        engine.set_image(quadrant_image, CropRect(0, 0, 4, 4))
        assert engine.conversion is None


class TestConvertWorker:
    def test_run_emits_results(self, qapp, engine):
        worker = ConvertWorker(engine)
        results, messages = [], []
        worker.finished.connect(results.append)
        worker.progress.connect(messages.append)
        worker.run()
        assert results[0]["n_beads"] == 12
        assert "Done" in messages

    def test_run_reports_errors(self, qapp, engine):
        engine.crop = CropRect(0, 0, 100, 100)
        worker = ConvertWorker(engine)
        results = []
        worker.finished.connect(results.append)
        worker.run()
        assert "does not fit" in results[0]["error"]

    def test_start_conversion_on_thread(self, qapp, engine):
        results = []
        loop = QtCore.QEventLoop()
        thread, worker = start_conversion(engine, results.append)
        thread.finished.connect(loop.quit)
        QtCore.QTimer.singleShot(10000, loop.quit)
        loop.exec()
        thread.wait(5000)
        assert results and results[0]["n_beads"] == 12
