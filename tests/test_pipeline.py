from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from unittest.mock import patch
import numpy as np
import pytest
from filmpy.domain.errors import (
    ColorSpaceMismatchError,
    PipelineConfigurationError,
    StageExecutionError,
)
from filmpy.domain.models import FilmConfig
from filmpy.domain.types import ColorSpace, Extent, FilmImage
from filmpy.features.grain.models import GrainConfig
from filmpy.features.lut.cache import LUTCache
from filmpy.services.rendering.context import RenderContext
from filmpy.services.rendering.pipeline import FilmPipeline


@pytest.fixture
def seeded_pipeline():
    return FilmPipeline(grain_rng_factory=lambda: np.random.default_rng(42))


@pytest.fixture
def frame(random_rgba):
    return FilmImage.from_array(random_rgba)


def _no_grain_config() -> FilmConfig:
    return FilmConfig.from_flat_dict({"grain_intensity": 0.0})


def test_stage_order(seeded_pipeline):
    assert [s.name for s in seeded_pipeline.stages] == ["tone_curve", "lut", "highlights", "grain"]
    assert [s.structural for s in seeded_pipeline.stages] == [True, True, False, False]


def test_preserves_extent_and_color_space(seeded_pipeline, frame):
    out = seeded_pipeline.process(frame)
    assert out.extent == frame.extent
    assert out.color_space == ColorSpace.DISPLAY_P3
    assert out.data.shape == frame.data.shape
    assert out.data.dtype == np.float32
    assert out.data.min() >= 0.0
    assert out.data.max() <= 1.0
    assert not out.data.flags.writeable


def test_input_is_not_modified(seeded_pipeline, frame):
    before = frame.data.copy()
    seeded_pipeline.process(frame)
    np.testing.assert_array_equal(frame.data, before)


def test_seeded_runs_are_identical(seeded_pipeline, frame):
    a = seeded_pipeline.process(frame)
    b = seeded_pipeline.process(frame)
    np.testing.assert_array_equal(a.data, b.data)


def test_unseeded_runs_differ_only_by_grain(frame):
    pipeline = FilmPipeline()
    a = pipeline.process(frame)
    b = pipeline.process(frame)
    assert not np.array_equal(a.data, b.data)
    assert float(np.abs(a.data - b.data).max()) < 0.05


def test_zero_grain_is_deterministic(frame):
    pipeline = FilmPipeline(config=_no_grain_config())
    a = pipeline.process(frame)
    b = pipeline.process(frame)
    assert a.data.tobytes() == b.data.tobytes()


def test_mid_grey_is_warm():
    pipeline = FilmPipeline(config=_no_grain_config())
    grey = FilmImage.from_array(np.full((4, 4, 3), 0.5, dtype=np.float32))
    r, g, b, a = pipeline.process(grey).data[0, 0]
    assert r > g > b
    assert 0.48 <= r <= 0.58
    assert a == 1.0


@pytest.mark.parametrize("value", [0.0, 1.0])
def test_black_and_white_frames(value):
    pipeline = FilmPipeline()
    img = FilmImage.from_array(np.full((8, 8, 3), value, dtype=np.float32))
    out = pipeline.process(img).data
    assert not np.isnan(out).any()
    assert out.min() >= 0.0
    assert out.max() <= 1.0


def test_single_pixel_frame(seeded_pipeline):
    img = FilmImage.from_array(np.full((1, 1, 4), 0.3, dtype=np.float32))
    out = seeded_pipeline.process(img)
    assert out.data.shape == (1, 1, 4)
    assert out.extent == Extent(0, 0, 1, 1)


def test_metrics_report_every_stage(seeded_pipeline, frame):
    _, metrics = seeded_pipeline.process_with_metrics(frame)
    assert set(metrics["timings"]) == {"tone_curve", "lut", "highlights", "grain"}
    assert metrics["skipped_stages"] == []


def test_rejects_foreign_color_space(seeded_pipeline, random_rgba):
    img = FilmImage.from_array(random_rgba, ColorSpace.SRGB)
    with pytest.raises(ColorSpaceMismatchError):
        seeded_pipeline.process(img)


def test_render_context_requires_matching_spaces():
    with pytest.raises(PipelineConfigurationError):
        RenderContext(ColorSpace.DISPLAY_P3, ColorSpace.SRGB)
    with pytest.raises(PipelineConfigurationError):
        RenderContext("ProPhoto")  # type: ignore[arg-type]


def test_structural_failure_aborts():
    pipeline = FilmPipeline(warm_up=False)
    img = FilmImage.from_array(np.full((4, 4, 4), 0.5, dtype=np.float32))
    with patch("filmpy.features.lut.processor.apply_lut", side_effect=RuntimeError("cube gone")):
        with pytest.raises(StageExecutionError) as exc:
            pipeline.process(img)
    assert exc.value.stage == "lut"


def test_cosmetic_failure_is_skipped(seeded_pipeline, frame):
    with patch(
        "filmpy.features.highlights.processor.desaturate_highlights",
        side_effect=RuntimeError("mask failed"),
    ):
        out, metrics = seeded_pipeline.process_with_metrics(frame)
    assert "highlights" in metrics["skipped_stages"]
    assert out.extent == frame.extent


def test_inner_fail_soft_step_is_reported(seeded_pipeline):
    px = np.empty((8, 8, 3), dtype=np.float32)
    px[...] = (1.0, 0.95, 0.8)
    bright = FilmImage.from_array(px)
    with patch("filmpy.features.highlights.logic.desaturate", side_effect=RuntimeError("filter unavailable")):
        _, metrics = seeded_pipeline.process_with_metrics(bright)
    assert metrics["skipped_stages"] == ["desaturate_highlights"]


def test_broken_backend_fails_construction():
    with patch("filmpy.features.tone.processor.apply_filmic_curve", side_effect=RuntimeError("no jit")):
        with pytest.raises(PipelineConfigurationError):
            FilmPipeline()


def test_invalid_config_fails_construction():
    with pytest.raises(PipelineConfigurationError):
        FilmPipeline(config=FilmConfig.from_flat_dict({"lut_dimension": 1}))


def test_pipelines_share_cached_lut():
    cache = LUTCache()
    a = FilmPipeline(lut_cache=cache, warm_up=False)
    b = FilmPipeline(lut_cache=cache, warm_up=False)
    assert a.table is b.table
    assert not a.table.flags.writeable


def test_render_bit_depths(seeded_pipeline, frame):
    px8 = seeded_pipeline.render(frame)
    px16 = seeded_pipeline.render(frame, bit_depth=16)
    assert px8.dtype == np.uint8
    assert px16.dtype == np.uint16
    assert px8.shape == px16.shape == frame.data.shape
    with pytest.raises(ValueError):
        seeded_pipeline.render(frame, bit_depth=12)


def test_concurrent_callers(frame):
    pipeline = FilmPipeline(config=_no_grain_config())
    expected = pipeline.process(frame).data

    with ThreadPoolExecutor(max_workers=4) as pool:
        results = list(pool.map(lambda _: pipeline.process(frame), range(8)))

    for out in results:
        np.testing.assert_array_equal(out.data, expected)


def test_config_replace_keeps_other_sections():
    base = FilmConfig()
    cfg = replace(base, grain=GrainConfig(intensity=0.1))
    pipeline = FilmPipeline(config=cfg, warm_up=False)
    assert pipeline.stages[3].config.intensity == 0.1
    assert pipeline.config.lut.dimension == 64
