from typing import (
    Protocol,
    Optional,
    Any,
    Dict,
    List,
    Tuple,
)
from dataclasses import dataclass, field
import numpy as np
from filmpy.domain.types import ColorSpace, Extent, FilmImage
from filmpy.domain.models import ExposureBiasRange


@dataclass
class PipelineContext:
    """
    Per-call state passed through the stages.
    """

    extent: Extent
    color_space: ColorSpace
    # Stage name -> elapsed milliseconds
    timings: Dict[str, float] = field(default_factory=dict)
    # Cosmetic stages that returned their input unchanged
    skipped_stages: List[str] = field(default_factory=list)


class IFilmStage(Protocol):
    """
    One typed pipeline operation.
    """

    name: str
    # Structural stages abort the pipeline on failure, cosmetic ones are skipped.
    structural: bool

    def process(self, image: FilmImage, context: PipelineContext) -> FilmImage: ...


class ICaptureSource(Protocol):
    """
    Supplies decoded frames. Owns the exposure bias hardware parameter.
    """

    def capture(self) -> FilmImage: ...

    def exposure_bias_range(self) -> Optional[ExposureBiasRange]: ...

    def set_exposure_bias(self, ev: float) -> None: ...

    def metadata(self) -> Dict[str, Any]: ...


class ICaptureListener(Protocol):
    """
    Receives capture lifecycle events.
    """

    def capture_did_start(self) -> None: ...

    def capture_did_finish(self, success: bool) -> None: ...

    def capture_did_fail(self, error: Exception) -> None: ...


class IImageStore(Protocol):
    """
    Encodes and persists rendered pixels.
    """

    @property
    def bit_depth(self) -> int: ...

    def encode(self, pixels: np.ndarray, metadata: Dict[str, Any]) -> Tuple[bytes, str]: ...

    def save(self, pixels: np.ndarray, metadata: Dict[str, Any]) -> str: ...


class IImageLoader(Protocol):
    """
    Decodes a file into a working-space image.
    """

    def load(self, file_path: str) -> Tuple[FilmImage, Dict[str, Any]]: ...
