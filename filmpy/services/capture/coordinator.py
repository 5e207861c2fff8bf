import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Optional
from filmpy.domain.interfaces import ICaptureListener, ICaptureSource, IImageStore
from filmpy.domain.models import ExposureBiasRange
from filmpy.kernel.system.config import APP_CONFIG
from filmpy.kernel.system.logging import get_logger
from filmpy.services.rendering.pipeline import FilmPipeline

logger = get_logger(__name__)


class CaptureCoordinator:
    """
    Capture -> develop -> render -> store, off the calling thread.

    One capture in flight at a time; requests made meanwhile are ignored.
    A failed develop is reported once and not retried.
    """

    def __init__(
        self,
        source: ICaptureSource,
        pipeline: FilmPipeline,
        store: IImageStore,
        listener: Optional[ICaptureListener] = None,
        executor: Optional[Executor] = None,
    ) -> None:
        self.source = source
        self.pipeline = pipeline
        self.store = store
        self.listener = listener
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=APP_CONFIG.max_workers, thread_name_prefix="filmpy-develop")
        self._lock = threading.Lock()
        self._is_capturing = False

    @property
    def is_capturing(self) -> bool:
        return self._is_capturing

    def exposure_bias_range(self) -> ExposureBiasRange:
        return self.source.exposure_bias_range() or ExposureBiasRange()

    def set_exposure_bias(self, ev: float) -> float:
        """
        Clamps to the device range and forwards to the source. Returns the applied value.
        """
        clamped = self.exposure_bias_range().clamp(ev)
        self.source.set_exposure_bias(clamped)
        return clamped

    def capture(self) -> Optional["Future[str]"]:
        """
        Starts a capture. Returns a future with the saved path, or None when busy.
        """
        with self._lock:
            if self._is_capturing:
                logger.debug("Capture already in progress, ignoring request")
                return None
            self._is_capturing = True

        try:
            if self.listener:
                self.listener.capture_did_start()
            return self._executor.submit(self._develop)
        except Exception:
            with self._lock:
                self._is_capturing = False
            raise

    def _develop(self) -> str:
        try:
            image = self.source.capture()
            processed = self.pipeline.process(image)
            pixels = self.pipeline.context.render(processed, bit_depth=self.store.bit_depth)
            path = self.store.save(pixels, self.source.metadata())
        except Exception as e:
            logger.error(f"Capture failed: {e}")
            if self.listener:
                self.listener.capture_did_fail(e)
                self.listener.capture_did_finish(False)
            raise
        finally:
            with self._lock:
                self._is_capturing = False

        if self.listener:
            self.listener.capture_did_finish(True)
        return path

    def shutdown(self, wait: bool = True) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=wait)
