import io
import os
from datetime import datetime
from fractions import Fraction
from typing import Any, Dict, Iterator, Optional, Tuple
import numpy as np
import tifffile
from PIL import Image, TiffImagePlugin
from filmpy.domain.errors import CaptureError
from filmpy.domain.models import ExportConfig, ExportFormat
from filmpy.kernel.system.logging import get_logger

logger = get_logger(__name__)

EXIF_SOFTWARE = 0x0131
EXIF_DATETIME = 0x0132
EXIF_IFD = 0x8769
EXIF_DATETIME_ORIGINAL = 0x9003
EXIF_EXPOSURE_BIAS = 0x9204


class ExportService:
    """
    Storage step: encodes rendered RGBA pixels to JPEG (8-bit) or TIFF (16-bit) and writes them to disk.
    """

    def __init__(self, config: ExportConfig):
        self.config = config

    @property
    def bit_depth(self) -> int:
        return 16 if self.config.export_fmt == ExportFormat.TIFF else 8

    def _get_icc_bytes(self) -> Optional[bytes]:
        """Loads ICC profile data for embedding."""
        path = self.config.icc_profile_path
        if path and os.path.exists(path):
            with open(path, "rb") as f:
                return f.read()
        return None

    def _build_exif(self, metadata: Dict[str, Any], timestamp: datetime) -> Image.Exif:
        stamp = timestamp.strftime("%Y:%m:%d %H:%M:%S")
        exif = Image.Exif()
        exif[EXIF_SOFTWARE] = self.config.software
        exif[EXIF_DATETIME] = stamp

        ifd: Dict[int, Any] = {EXIF_DATETIME_ORIGINAL: stamp}
        if "exposure_bias" in metadata:
            ifd[EXIF_EXPOSURE_BIAS] = TiffImagePlugin.IFDRational(Fraction(float(metadata["exposure_bias"])).limit_denominator(1000))
        exif[EXIF_IFD] = ifd
        return exif

    def encode(self, pixels: np.ndarray, metadata: Optional[Dict[str, Any]] = None) -> Tuple[bytes, str]:
        """
        Returns (file bytes, extension). Alpha is dropped, captures are opaque.
        """
        metadata = metadata or {}
        if pixels.ndim != 3 or pixels.shape[2] not in (3, 4):
            raise CaptureError(f"Expected (H, W, 3|4) pixels, got {pixels.shape}")
        rgb = np.ascontiguousarray(pixels[..., :3])
        icc_bytes = self._get_icc_bytes()
        timestamp = datetime.now()

        output_buf = io.BytesIO()
        if self.config.export_fmt == ExportFormat.TIFF:
            if rgb.dtype != np.uint16:
                rgb = rgb.astype(np.uint16) * 257
            tifffile.imwrite(
                output_buf,
                rgb,
                photometric="rgb",
                iccprofile=icc_bytes,
                compression="lzw",
                software=self.config.software,
                datetime=timestamp,
            )
            return output_buf.getvalue(), "tiff"

        if rgb.dtype == np.uint16:
            rgb = (rgb >> 8).astype(np.uint8)
        pil_img = Image.fromarray(rgb)
        pil_img.save(
            output_buf,
            format="JPEG",
            quality=self.config.jpeg_quality,
            icc_profile=icc_bytes,
            exif=self._build_exif(metadata, timestamp),
        )
        return output_buf.getvalue(), "jpg"

    def _candidate_paths(self, ext: str) -> Iterator[str]:
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        base = os.path.join(self.config.export_dir, f"{self.config.filename_prefix}_{stamp}")
        yield f"{base}.{ext}"
        counter = 1
        while True:
            yield f"{base}_{counter}.{ext}"
            counter += 1

    def save(self, pixels: np.ndarray, metadata: Optional[Dict[str, Any]] = None) -> str:
        img_bytes, ext = self.encode(pixels, metadata)

        os.makedirs(self.config.export_dir, exist_ok=True)
        # Exclusive create: concurrent saves in the same second never share a name.
        for out_path in self._candidate_paths(ext):
            try:
                out_f = open(out_path, "xb")
            except FileExistsError:
                continue
            with out_f:
                out_f.write(img_bytes)
            break

        logger.info(f"Saved {out_path} ({len(img_bytes) / 1024:.0f} KiB)")
        return out_path
