from typing import Any, Dict, Optional
from filmpy.domain.interfaces import IImageLoader
from filmpy.domain.models import ExposureBiasRange
from filmpy.domain.types import ColorSpace, FilmImage
from filmpy.infrastructure.loaders.image_loader import ImageLoader
from filmpy.kernel.system.logging import get_logger

logger = get_logger(__name__)


class FileCaptureSource:
    """
    Capture source backed by an image file, for batch and CLI use.
    Exposure bias is only recorded; a file cannot be re-exposed.
    """

    def __init__(
        self,
        file_path: str,
        color_space: ColorSpace = ColorSpace.DISPLAY_P3,
        bias_range: Optional[ExposureBiasRange] = None,
        loader: Optional[IImageLoader] = None,
    ) -> None:
        self.file_path = file_path
        self._loader: IImageLoader = loader or ImageLoader(color_space)
        self._bias_range = bias_range
        self._exposure_bias = 0.0
        self._metadata: Dict[str, Any] = {}

    def capture(self) -> FilmImage:
        image, self._metadata = self._loader.load(self.file_path)
        source = self._metadata.get("source", self.file_path)
        logger.info(f"Captured {source}: {image.width} x {image.height} ({image.width * image.height / 1_000_000:.1f}MP)")
        return image

    def exposure_bias_range(self) -> Optional[ExposureBiasRange]:
        return self._bias_range

    def set_exposure_bias(self, ev: float) -> None:
        self._exposure_bias = ev

    def metadata(self) -> Dict[str, Any]:
        return {**self._metadata, "exposure_bias": self._exposure_bias}
