import numpy as np
from filmpy.domain.interfaces import PipelineContext
from filmpy.domain.types import FilmImage
from filmpy.features.lut.logic import apply_lut


class LUTProcessor:
    """
    Cube-interpolate stage. Structural.
    """

    name = "lut"
    structural = True

    def __init__(self, table: np.ndarray):
        self.table = table

    def process(self, image: FilmImage, context: PipelineContext) -> FilmImage:
        return image.with_data(apply_lut(self.table, image.data))
