from typing import Callable, Optional
import numpy as np
from filmpy.domain.interfaces import PipelineContext
from filmpy.domain.types import FilmImage
from filmpy.features.grain.models import GrainConfig
from filmpy.features.grain.logic import add_film_grain


class GrainProcessor:
    """
    Noise-blend stage. Cosmetic, always last.
    """

    name = "grain"
    structural = False

    def __init__(self, config: GrainConfig, rng_factory: Optional[Callable[[], np.random.Generator]] = None):
        self.config = config
        # None -> a fresh OS-seeded generator per capture
        self.rng_factory = rng_factory

    def process(self, image: FilmImage, context: PipelineContext) -> FilmImage:
        rng = self.rng_factory() if self.rng_factory is not None else None
        res = add_film_grain(
            image.data,
            context.extent,
            intensity=self.config.intensity,
            strength=self.config.strength,
            image_extent=image.extent,
            rng=rng,
            failures=context.skipped_stages,
        )
        if res is image.data:
            return image
        return image.with_data(res)
