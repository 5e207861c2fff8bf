from filmpy.domain.interfaces import PipelineContext
from filmpy.domain.types import FilmImage
from filmpy.features.tone.models import ToneConfig
from filmpy.features.tone.logic import FilmicToneCurve, apply_filmic_curve


class ToneCurveProcessor:
    """
    Curve-apply stage. Structural.
    """

    name = "tone_curve"
    structural = True

    def __init__(self, config: ToneConfig):
        self.config = config
        self.curve = FilmicToneCurve(config.points)
        self._table = self.curve.table()
        self._table.flags.writeable = False

    def process(self, image: FilmImage, context: PipelineContext) -> FilmImage:
        return image.with_data(apply_filmic_curve(image.data, table=self._table))
