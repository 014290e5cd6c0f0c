from __future__ import annotations

import numpy as np
import pytest

from enhancepy.core.evaluation import MeasureEvaluationStage, apply_measure
from enhancepy.core.masks import LabelMask, SpatialObjectMask
from enhancepy.core.regions import Region
from enhancepy.core.validation import DomainMismatchError
from enhancepy.measures import DescoteauxSheetness, KrcahSheetness, ParameterSet

PARAMS = ParameterSet(alpha=0.5, beta=0.5, c=1.0)


def _random_eigen(shape=(11, 6, 5), seed: int = 7) -> np.ndarray:
    rng = np.random.default_rng(seed)
    e = rng.normal(scale=3.0, size=shape + (3,))
    idx = np.argsort(np.abs(e), axis=-1, kind="stable")
    return np.take_along_axis(e, idx, axis=-1)


def test_unmasked_matches_direct_evaluation() -> None:
    eigen = _random_eigen()
    measure = DescoteauxSheetness()
    out = MeasureEvaluationStage(measure, n_jobs=1)(eigen, PARAMS)
    np.testing.assert_allclose(out, measure.evaluate(eigen, PARAMS))
    assert out.shape == eigen.shape[:-1]


def test_masked_voxels_are_zero() -> None:
    eigen = np.zeros((6, 6, 6, 3))
    eigen[...] = [0.0, -0.1, -10.0]
    labels = np.zeros((6, 6, 6), dtype=np.uint8)
    labels[1:4, 1:4, 1:4] = 1

    out = apply_measure(eigen, DescoteauxSheetness(), PARAMS, labels, n_jobs=1)
    assert np.all(out[labels == 0] == 0.0)
    assert np.all(out[labels == 1] > 0.0)


@pytest.mark.parametrize("n_jobs,n_regions", [(1, 5), (4, 4), (3, 11), (2, None)])
def test_output_independent_of_partitioning(n_jobs, n_regions) -> None:
    eigen = _random_eigen()
    labels = np.random.default_rng(3).integers(0, 2, size=eigen.shape[:-1])
    measure = KrcahSheetness()

    reference = apply_measure(eigen, measure, PARAMS, labels, n_jobs=1, n_regions=1)
    out = apply_measure(eigen, measure, PARAMS, labels, n_jobs=n_jobs, n_regions=n_regions)
    np.testing.assert_array_equal(out, reference)


def test_sub_region_output() -> None:
    eigen = _random_eigen()
    measure = DescoteauxSheetness()
    full = apply_measure(eigen, measure, PARAMS, n_jobs=1)

    region = Region((2, 1, 0), (5, 3, 5))
    out = apply_measure(eigen, measure, PARAMS, region=region, n_jobs=2)
    assert out.shape == (5, 3, 5)
    np.testing.assert_allclose(out, full[2:7, 1:4, 0:5])


def test_region_outside_image_raises() -> None:
    eigen = _random_eigen()
    with pytest.raises(DomainMismatchError):
        apply_measure(eigen, DescoteauxSheetness(), PARAMS, region=Region((8, 0, 0), (5, 6, 5)))


def test_mask_not_covering_region_raises() -> None:
    eigen = _random_eigen(shape=(6, 6, 6))
    mask = LabelMask(np.ones((6, 6, 3)))
    with pytest.raises(DomainMismatchError):
        apply_measure(eigen, DescoteauxSheetness(), PARAMS, mask)


def test_background_value_override() -> None:
    eigen = np.zeros((4, 4, 4, 3))
    eigen[...] = [0.0, -0.1, -10.0]
    labels = np.full((4, 4, 4), 5)
    labels[:2] = 7

    out = apply_measure(eigen, DescoteauxSheetness(), PARAMS, labels, background_value=7, n_jobs=1)
    assert np.all(out[:2] == 0.0)
    assert np.all(out[2:] > 0.0)


def test_spatial_object_mask_uses_physical_points() -> None:
    eigen = np.zeros((4, 4, 4, 3))
    eigen[...] = [0.0, -0.1, -10.0]

    class Slab:
        def contains(self, point) -> bool:
            return point[0] >= 10.0

    mask = SpatialObjectMask(Slab(), origin=(8.0, 0.0, 0.0), spacing=(1.0, 1.0, 1.0))
    out = apply_measure(eigen, DescoteauxSheetness(), PARAMS, mask, n_jobs=2)
    assert np.all(out[:2] == 0.0)
    assert np.all(out[2:] > 0.0)


def test_stage_exposes_measure_order() -> None:
    stage = MeasureEvaluationStage(DescoteauxSheetness())
    assert stage.eigenvalue_order == "magnitude"
    assert "DescoteauxSheetness" in repr(stage)


def test_larger_mask_output_matches_image() -> None:
    eigen = np.zeros((4, 4, 4, 3))
    eigen[...] = [0.0, -0.1, -10.0]
    labels = np.ones((6, 6, 6), dtype=np.uint8)
    labels[4:] = 0

    out = apply_measure(eigen, DescoteauxSheetness(), PARAMS, labels, n_jobs=1)
    assert out.shape == (4, 4, 4)
    assert np.all(out > 0.0)


def test_offset_superset_mask_aligns_by_index() -> None:
    eigen = np.zeros((4, 4, 4, 3))
    eigen[...] = [0.0, -0.1, -10.0]
    labels = np.zeros((6, 6, 6), dtype=np.uint8)
    labels[1:5, 1:5, 1:5] = 1
    labels[1, 1, 1] = 0
    mask = LabelMask(labels, background_value=0, index=(-1, -1, -1))

    out = apply_measure(eigen, DescoteauxSheetness(), PARAMS, mask, n_jobs=2, n_regions=4)
    assert out[0, 0, 0] == 0.0
    assert np.count_nonzero(out) == 63
