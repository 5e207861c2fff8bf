import threading
import numpy as np
import pytest
from filmpy.domain.models import ExposureBiasRange
from filmpy.domain.types import FilmImage
from filmpy.services.capture.coordinator import CaptureCoordinator
from filmpy.services.rendering.pipeline import FilmPipeline


class FakeSource:
    def __init__(self, bias_range=None, gate=None, error=None):
        self.bias_range = bias_range
        self.gate = gate
        self.error = error
        self.ev = None
        self.captures = 0

    def capture(self):
        self.captures += 1
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if self.error is not None:
            raise self.error
        return FilmImage.from_array(np.full((6, 8, 3), 0.5, dtype=np.float32))

    def exposure_bias_range(self):
        return self.bias_range

    def set_exposure_bias(self, ev):
        self.ev = ev

    def metadata(self):
        return {"source": "fake", "exposure_bias": self.ev or 0.0}


class FakeStore:
    def __init__(self, bit_depth=8):
        self._bit_depth = bit_depth
        self.saved = []

    @property
    def bit_depth(self):
        return self._bit_depth

    def encode(self, pixels, metadata):
        return pixels.tobytes(), "raw"

    def save(self, pixels, metadata):
        self.saved.append((pixels, metadata))
        return f"/tmp/capture_{len(self.saved)}.raw"


class RecordingListener:
    def __init__(self):
        self.events = []

    def capture_did_start(self):
        self.events.append("start")

    def capture_did_finish(self, success):
        self.events.append(("finish", success))

    def capture_did_fail(self, error):
        self.events.append(("fail", str(error)))


@pytest.fixture(scope="module")
def pipeline():
    return FilmPipeline(grain_rng_factory=lambda: np.random.default_rng(0))


def test_capture_develops_and_stores(pipeline):
    store = FakeStore(bit_depth=16)
    listener = RecordingListener()
    coordinator = CaptureCoordinator(FakeSource(), pipeline, store, listener)

    path = coordinator.capture().result(timeout=30)
    coordinator.shutdown()

    assert path == "/tmp/capture_1.raw"
    pixels, metadata = store.saved[0]
    assert pixels.dtype == np.uint16
    assert pixels.shape == (6, 8, 4)
    assert metadata["source"] == "fake"
    assert listener.events == ["start", ("finish", True)]
    assert not coordinator.is_capturing


def test_request_while_busy_is_ignored(pipeline):
    gate = threading.Event()
    source = FakeSource(gate=gate)
    store = FakeStore()
    coordinator = CaptureCoordinator(source, pipeline, store)

    first = coordinator.capture()
    assert coordinator.is_capturing
    assert coordinator.capture() is None

    gate.set()
    first.result(timeout=30)
    coordinator.shutdown()

    assert source.captures == 1
    assert len(store.saved) == 1


def test_failure_is_reported_once(pipeline):
    store = FakeStore()
    listener = RecordingListener()
    source = FakeSource(error=OSError("sensor unplugged"))
    coordinator = CaptureCoordinator(source, pipeline, store, listener)

    future = coordinator.capture()
    with pytest.raises(OSError):
        future.result(timeout=30)
    coordinator.shutdown()

    assert store.saved == []
    assert source.captures == 1
    assert listener.events == ["start", ("fail", "sensor unplugged"), ("finish", False)]
    assert not coordinator.is_capturing


def test_capture_possible_again_after_failure(pipeline):
    source = FakeSource(error=RuntimeError("flake"))
    store = FakeStore()
    coordinator = CaptureCoordinator(source, pipeline, store)

    with pytest.raises(RuntimeError):
        coordinator.capture().result(timeout=30)

    source.error = None
    assert coordinator.capture().result(timeout=30) == "/tmp/capture_1.raw"
    coordinator.shutdown()


def test_failing_start_listener_releases_busy_flag(pipeline):
    class FlakyListener(RecordingListener):
        def __init__(self):
            super().__init__()
            self.fail_next_start = True

        def capture_did_start(self):
            if self.fail_next_start:
                self.fail_next_start = False
                raise RuntimeError("listener gone")
            super().capture_did_start()

    store = FakeStore()
    listener = FlakyListener()
    coordinator = CaptureCoordinator(FakeSource(), pipeline, store, listener)

    with pytest.raises(RuntimeError):
        coordinator.capture()
    assert not coordinator.is_capturing

    future = coordinator.capture()
    assert future is not None
    assert future.result(timeout=30) == "/tmp/capture_1.raw"
    coordinator.shutdown()
    assert listener.events == ["start", ("finish", True)]


def test_exposure_bias_is_clamped(pipeline):
    source = FakeSource(bias_range=ExposureBiasRange(-2.0, 2.0))
    coordinator = CaptureCoordinator(source, pipeline, FakeStore())

    assert coordinator.set_exposure_bias(5.0) == 2.0
    assert source.ev == 2.0
    assert coordinator.set_exposure_bias(-0.5) == -0.5
    coordinator.shutdown()


def test_default_bias_range_when_source_reports_none(pipeline):
    source = FakeSource()
    coordinator = CaptureCoordinator(source, pipeline, FakeStore())
    assert coordinator.exposure_bias_range() == ExposureBiasRange(-3.0, 3.0)
    assert coordinator.set_exposure_bias(-9.0) == -3.0
    coordinator.shutdown()
