import time
from typing import Any, Callable, Dict, Optional, Tuple
import numpy as np
from filmpy.domain.errors import PipelineConfigurationError, StageExecutionError
from filmpy.domain.interfaces import IFilmStage, PipelineContext
from filmpy.domain.models import FilmConfig
from filmpy.domain.types import FilmImage
from filmpy.features.tone.processor import ToneCurveProcessor
from filmpy.features.lut.processor import LUTProcessor
from filmpy.features.lut.cache import LUTCache, shared_lut_cache
from filmpy.features.highlights.processor import HighlightProcessor
from filmpy.features.grain.processor import GrainProcessor
from filmpy.kernel.system.config import DEFAULT_FILM_CONFIG
from filmpy.kernel.system.logging import get_logger
from filmpy.services.rendering.context import RenderContext

logger = get_logger(__name__)


class FilmPipeline:
    """
    Portra 400 emulation: tone curve -> LUT -> highlight desaturation -> grain.

    The order is fixed. The LUT was authored against the curve's output range,
    and grain goes last so it is neither curved nor desaturated.
    All state (curve table, cube) is immutable after construction, so one
    instance can serve concurrent callers.
    """

    def __init__(
        self,
        config: Optional[FilmConfig] = None,
        context: Optional[RenderContext] = None,
        lut_cache: Optional[LUTCache] = None,
        grain_rng_factory: Optional[Callable[[], np.random.Generator]] = None,
        warm_up: bool = True,
    ) -> None:
        self.config = config or DEFAULT_FILM_CONFIG
        self.context = context or RenderContext()
        self.lut_cache = lut_cache if lut_cache is not None else shared_lut_cache

        self.table = self.lut_cache.get(self.config.lut.dimension)
        self.stages: Tuple[IFilmStage, ...] = (
            ToneCurveProcessor(self.config.tone),
            LUTProcessor(self.table),
            HighlightProcessor(self.config.highlights),
            GrainProcessor(self.config.grain, rng_factory=grain_rng_factory),
        )

        if warm_up:
            self._warm_up()

        logger.info(f"FilmPipeline: CPU backend ready ({self.context.working_color_space}, {self.config.lut.dimension}^3 LUT)")

    def _warm_up(self) -> None:
        """
        Compiles every kernel on a 1x1 frame so a broken backend fails here, not on the first capture.
        """
        frame = FilmImage.from_array(np.full((1, 1, 4), 0.5, dtype=np.float32), self.context.working_color_space)
        try:
            self.process(frame)
        except Exception as e:
            raise PipelineConfigurationError(f"Rendering backend unavailable: {e}") from e

    def _run_stage(self, stage: IFilmStage, image: FilmImage, context: PipelineContext) -> FilmImage:
        start = time.perf_counter()
        try:
            result = stage.process(image, context)
        except StageExecutionError:
            raise
        except Exception as e:
            if stage.structural:
                raise StageExecutionError(f"{stage.name} stage failed: {e}", stage=stage.name) from e
            # Cosmetic stages never cost the capture.
            logger.warning(f"{stage.name} stage skipped: {e}")
            context.skipped_stages.append(stage.name)
            result = image

        if result.extent != image.extent or result.color_space != image.color_space:
            raise StageExecutionError(
                f"{stage.name} stage changed extent/color space ({image.extent}, {image.color_space}) -> ({result.extent}, {result.color_space})",
                stage=stage.name,
            )

        context.timings[stage.name] = (time.perf_counter() - start) * 1000.0
        return result

    def process_with_metrics(self, image: FilmImage) -> Tuple[FilmImage, Dict[str, Any]]:
        """
        Runs all stages. Returns the processed image and per-call metrics.
        """
        self.context.check(image)
        context = PipelineContext(extent=image.extent, color_space=image.color_space)

        current = image
        for stage in self.stages:
            current = self._run_stage(stage, current, context)

        metrics: Dict[str, Any] = {
            "timings": dict(context.timings),
            "skipped_stages": list(context.skipped_stages),
        }
        return current, metrics

    def process(self, image: FilmImage) -> FilmImage:
        processed, _ = self.process_with_metrics(image)
        return processed

    def render(self, image: FilmImage, bit_depth: int = 8) -> np.ndarray:
        """Process and materialize in one call."""
        return self.context.render(self.process(image), bit_depth=bit_depth)
