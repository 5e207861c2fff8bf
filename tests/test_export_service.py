import io
import os
from concurrent.futures import ThreadPoolExecutor
import numpy as np
import pytest
import tifffile
from PIL import Image
from filmpy.domain.errors import CaptureError
from filmpy.domain.models import ExportConfig, ExportFormat
from filmpy.services.export.service import EXIF_IFD, EXIF_EXPOSURE_BIAS, EXIF_SOFTWARE, ExportService


@pytest.fixture
def rgba8():
    px = np.zeros((12, 16, 4), dtype=np.uint8)
    px[..., 0] = 200
    px[..., 1] = 120
    px[..., 2] = 40
    px[..., 3] = 255
    return px


def test_jpeg_encode_with_exif(tmp_path, rgba8):
    service = ExportService(ExportConfig(export_dir=str(tmp_path)))
    data, ext = service.encode(rgba8, {"exposure_bias": 0.5})

    assert ext == "jpg"
    assert service.bit_depth == 8
    assert data[:2] == b"\xff\xd8"

    with Image.open(io.BytesIO(data)) as img:
        assert img.size == (16, 12)
        assert img.mode == "RGB"
        exif = img.getexif()
        assert exif[EXIF_SOFTWARE] == "FilmPy 1.0"
        assert float(exif.get_ifd(EXIF_IFD)[EXIF_EXPOSURE_BIAS]) == pytest.approx(0.5)


def test_jpeg_accepts_16_bit_pixels(tmp_path):
    service = ExportService(ExportConfig(export_dir=str(tmp_path)))
    px = np.full((4, 4, 4), 65535, dtype=np.uint16)
    data, _ = service.encode(px, {})
    with Image.open(io.BytesIO(data)) as img:
        assert img.getpixel((0, 0))[0] >= 250


def test_tiff_is_16_bit(tmp_path):
    service = ExportService(ExportConfig(export_dir=str(tmp_path), export_fmt=ExportFormat.TIFF))
    assert service.bit_depth == 16

    px = np.zeros((5, 7, 4), dtype=np.uint16)
    px[..., 0] = 65535
    px[..., 1] = 1000
    data, ext = service.encode(px, {})

    assert ext == "tiff"
    with tifffile.TiffFile(io.BytesIO(data)) as tif:
        arr = tif.asarray()
    assert arr.dtype == np.uint16
    assert arr.shape == (5, 7, 3)
    assert arr[0, 0, 0] == 65535
    assert arr[0, 0, 1] == 1000


def test_tiff_widens_8_bit_pixels(tmp_path, rgba8):
    service = ExportService(ExportConfig(export_dir=str(tmp_path), export_fmt=ExportFormat.TIFF))
    data, _ = service.encode(rgba8, {})
    with tifffile.TiffFile(io.BytesIO(data)) as tif:
        arr = tif.asarray()
    assert arr[0, 0, 0] == 200 * 257


def test_save_writes_unique_files(tmp_path, rgba8):
    out_dir = tmp_path / "nested" / "export"
    service = ExportService(ExportConfig(export_dir=str(out_dir), filename_prefix="portra"))

    first = service.save(rgba8, {})
    second = service.save(rgba8, {})

    assert first != second
    assert os.path.basename(first).startswith("portra_")
    assert first.endswith(".jpg")
    assert os.path.getsize(first) > 0
    assert os.path.exists(second)


def test_rejects_bad_pixel_layout(tmp_path):
    service = ExportService(ExportConfig(export_dir=str(tmp_path)))
    with pytest.raises(CaptureError):
        service.encode(np.zeros((4, 4), dtype=np.uint8), {})


def test_concurrent_saves_never_overwrite(tmp_path, rgba8):
    service = ExportService(ExportConfig(export_dir=str(tmp_path), filename_prefix="burst"))

    with ThreadPoolExecutor(max_workers=8) as pool:
        paths = list(pool.map(lambda _: service.save(rgba8, {}), range(16)))

    assert len(set(paths)) == 16
    assert sorted(os.listdir(tmp_path)) == sorted(os.path.basename(p) for p in paths)
    for p in paths:
        with Image.open(p) as img:
            assert img.size == (16, 12)


def test_save_skips_existing_name(tmp_path, rgba8):
    service = ExportService(ExportConfig(export_dir=str(tmp_path), filename_prefix="shot"))
    taken = next(service._candidate_paths("jpg"))
    with open(taken, "wb") as f:
        f.write(b"keep me")

    out = service.save(rgba8, {})

    with open(taken, "rb") as f:
        assert f.read() == b"keep me"
    assert out != taken
