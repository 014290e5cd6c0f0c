from __future__ import annotations

import logging

import numpy as np
import pytest

from enhancepy.core.estimation import (
    LOWEST,
    DescoteauxParameterEstimator,
    estimate_parameters,
    max_frobenius_norm,
)
from enhancepy.core.masks import LabelMask, SpatialObjectMask
from enhancepy.core.validation import DataError, DomainMismatchError


def _constant_eigen_image(value: float, shape=(10, 10, 10)) -> np.ndarray:
    return np.full(shape + (3,), value, dtype=np.float64)


def _boxed_mask_and_image():
    """Label 1 everywhere, label 2 in the box starting at index 2 of size 8.

    Eigenvalues are (-1, -1, -1) outside the box and (3, 3, 3) inside it.
    """
    eigen = _constant_eigen_image(-1.0)
    eigen[2:10, 2:10, 2:10] = 3.0
    labels = np.ones((10, 10, 10), dtype=np.int16)
    labels[2:10, 2:10, 2:10] = 2
    return eigen, labels


def test_default_parameters_from_constant_image() -> None:
    params = DescoteauxParameterEstimator()(_constant_eigen_image(-1.0))
    assert params.alpha == 0.5
    assert params.beta == 0.5
    assert params.c == pytest.approx(np.sqrt(3.0) * 0.5)


def test_frobenius_weight_scales_c() -> None:
    params = DescoteauxParameterEstimator(frobenius_weight=0.25)(_constant_eigen_image(-1.0))
    assert params.alpha == 0.5
    assert params.beta == 0.5
    assert params.c == pytest.approx(np.sqrt(3.0) * 0.25)


def test_mask_background_excludes_foreground_box() -> None:
    eigen, labels = _boxed_mask_and_image()
    # Excluding label 2 leaves only the (-1, -1, -1) voxels.
    params = DescoteauxParameterEstimator(background_value=2)(eigen, labels)
    assert params.c == pytest.approx(np.sqrt(3.0) * 0.5)


def test_mask_background_keeps_foreground_box() -> None:
    eigen, labels = _boxed_mask_and_image()
    params = DescoteauxParameterEstimator(background_value=1)(eigen, labels)
    assert params.c == pytest.approx(np.sqrt(3.0) * 3.0 * 0.5)


def test_label_mask_object_uses_its_own_background() -> None:
    eigen, labels = _boxed_mask_and_image()
    params = estimate_parameters(eigen, LabelMask(labels, background_value=1))
    assert params.c == pytest.approx(np.sqrt(3.0) * 3.0 * 0.5)


@pytest.mark.parametrize("n_jobs,n_regions", [(1, 1), (1, 7), (4, 3), (4, 10), (3, None)])
def test_estimate_independent_of_partitioning(n_jobs, n_regions) -> None:
    rng = np.random.default_rng(1234)
    eigen = rng.normal(size=(13, 9, 7, 3))
    labels = rng.integers(0, 3, size=(13, 9, 7))

    reference = estimate_parameters(eigen, labels, n_jobs=1, n_regions=1)
    params = estimate_parameters(eigen, labels, n_jobs=n_jobs, n_regions=n_regions)
    assert params == reference


def test_changing_excluded_voxels_leaves_estimate_unchanged() -> None:
    eigen, labels = _boxed_mask_and_image()
    before = estimate_parameters(eigen, labels, background_value=2)
    eigen[2:10, 2:10, 2:10] = 1e6
    after = estimate_parameters(eigen, labels, background_value=2)
    assert before == after


def test_all_excluded_gives_zero_c(caplog) -> None:
    eigen = _constant_eigen_image(-1.0)
    labels = np.zeros((10, 10, 10), dtype=np.uint8)
    with caplog.at_level(logging.WARNING):
        params = estimate_parameters(eigen, labels, background_value=0)
    assert params.c == 0.0
    assert "no voxels inside the mask" in caplog.text
    assert max_frobenius_norm(eigen, labels, 0) == LOWEST


def test_nan_norms_are_skipped() -> None:
    eigen = _constant_eigen_image(-1.0, shape=(4, 4, 4))
    eigen[0, 0, 0] = np.nan
    assert max_frobenius_norm(eigen) == pytest.approx(np.sqrt(3.0))


def test_smaller_mask_raises_domain_mismatch() -> None:
    eigen = _constant_eigen_image(-1.0)
    labels = np.ones((8, 8, 8), dtype=np.int16)
    with pytest.raises(DomainMismatchError):
        estimate_parameters(eigen, labels)


def test_offset_mask_must_contain_image_region() -> None:
    eigen = _constant_eigen_image(-1.0, shape=(4, 4, 4))
    mask = LabelMask(np.ones((4, 4, 4)), background_value=0, index=(1, 0, 0))
    with pytest.raises(DomainMismatchError):
        estimate_parameters(eigen, mask)


def test_spatial_object_mask_restricts_statistics() -> None:
    eigen = _constant_eigen_image(-1.0, shape=(6, 6, 6))
    eigen[4:, :, :] = -2.0
    mask = SpatialObjectMask(lambda p: p[0] < 3.5)
    params = estimate_parameters(eigen, mask)
    assert params.c == pytest.approx(np.sqrt(3.0) * 0.5)


def test_eigen_image_must_match_dimension() -> None:
    with pytest.raises(DataError):
        estimate_parameters(np.zeros((4, 4, 4, 2)))


def test_larger_mask_ignores_voxels_outside_image() -> None:
    eigen = _constant_eigen_image(-1.0, shape=(4, 4, 4))
    labels = np.ones((6, 6, 6), dtype=np.int16)
    params = estimate_parameters(eigen, labels)
    assert params.c == pytest.approx(np.sqrt(3.0) * 0.5)


def test_offset_superset_mask_aligns_by_index() -> None:
    eigen = _constant_eigen_image(-1.0, shape=(4, 4, 4))
    eigen[0, 0, 0] = -5.0

    labels = np.zeros((6, 6, 6), dtype=np.int16)
    labels[1:5, 1:5, 1:5] = 1
    # Image voxel (0, 0, 0) sits at mask voxel (1, 1, 1).
    labels[1, 1, 1] = 0
    mask = LabelMask(labels, background_value=0, index=(-1, -1, -1))

    params = estimate_parameters(eigen, mask, n_jobs=2, n_regions=3)
    assert params.c == pytest.approx(np.sqrt(3.0) * 0.5)
