from filmpy.domain.interfaces import PipelineContext
from filmpy.domain.types import FilmImage
from filmpy.features.highlights.models import HighlightConfig
from filmpy.features.highlights.logic import desaturate_highlights


class HighlightProcessor:
    """
    Mask-blend stage. Cosmetic: failures leave the image as it was.
    """

    name = "highlights"
    structural = False

    def __init__(self, config: HighlightConfig):
        self.config = config

    def process(self, image: FilmImage, context: PipelineContext) -> FilmImage:
        res = desaturate_highlights(
            image.data,
            threshold=self.config.threshold,
            factor=self.config.desaturation_factor,
            failures=context.skipped_stages,
        )
        if res is image.data:
            return image
        return image.with_data(res)
