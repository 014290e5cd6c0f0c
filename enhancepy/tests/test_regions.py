from __future__ import annotations

import threading

import numpy as np
import pytest

from enhancepy.core.regions import Region, for_each_region
from enhancepy.core.validation import InvalidArgumentError
from enhancepy.core.workers import effective_worker_count, resolve_n_jobs


def test_region_basics() -> None:
    r = Region((1, 2, 3), (4, 5, 6))
    assert r.ndim == 3
    assert r.upper == (5, 7, 9)
    assert r.number_of_voxels == 120
    assert not r.is_empty


def test_region_validation() -> None:
    with pytest.raises(InvalidArgumentError):
        Region((0, 0), (1, 1, 1))
    with pytest.raises(InvalidArgumentError):
        Region((0,), (-1,))


def test_intersection_and_disjoint() -> None:
    a = Region((0, 0), (10, 10))
    b = Region((5, 8), (10, 10))
    assert a.intersect(b) == Region((5, 8), (5, 2))
    assert a.intersect(Region((20, 20), (2, 2))).is_empty


def test_contains() -> None:
    outer = Region((0, 0, 0), (10, 10, 10))
    assert outer.contains(Region((2, 2, 2), (8, 8, 8)))
    assert not outer.contains(Region((2, 2, 2), (9, 8, 8)))
    assert outer.contains(Region((50, 50, 50), (0, 0, 0)))


def test_slices_relative_to_origin() -> None:
    image = Region((2, 0), (6, 4))
    piece = Region((3, 1), (2, 2))
    arr = np.arange(24).reshape(6, 4)
    assert arr[piece.slices(image)].tolist() == [[5, 6], [9, 10]]


@pytest.mark.parametrize("n", [1, 2, 3, 7, 13, 100])
def test_split_covers_region_exactly_once(n: int) -> None:
    region = Region((1, 0, 0), (13, 4, 5))
    coverage = np.zeros((14, 4, 5), dtype=int)
    pieces = region.split(n)
    assert len(pieces) == min(n, 13)
    for piece in pieces:
        coverage[piece.slices()] += 1
    assert coverage[1:].min() == 1 and coverage[1:].max() == 1
    assert coverage[0].sum() == 0


def test_empty_region_splits_to_nothing() -> None:
    assert Region((0, 0), (0, 5)).split(4) == []
    assert for_each_region(Region((0, 0), (0, 5)), lambda r: 1, n_jobs=2) == []


def test_for_each_region_returns_in_partition_order() -> None:
    region = Region((0, 0), (12, 3))
    starts = for_each_region(region, lambda r: r.index[0], n_jobs=4, n_regions=6)
    assert starts == sorted(starts)
    assert len(starts) == 6


def test_for_each_region_runs_every_piece_once() -> None:
    seen = []
    lock = threading.Lock()

    def record(piece: Region) -> None:
        with lock:
            seen.append(piece)

    region = Region((0, 0, 0), (9, 2, 2))
    for_each_region(region, record, n_jobs=3, n_regions=9)
    assert sum(p.number_of_voxels for p in seen) == region.number_of_voxels
    assert len(set(seen)) == 9


def test_task_errors_propagate() -> None:
    def boom(piece: Region) -> None:
        if piece.index[0] > 0:
            raise RuntimeError("task failed")

    with pytest.raises(RuntimeError, match="task failed"):
        for_each_region(Region((0,), (8,)), boom, n_jobs=2, n_regions=4)


def test_worker_count_env_hints(monkeypatch) -> None:
    monkeypatch.setenv("ENHANCEPY_N_JOBS", "3")
    assert effective_worker_count() == 3
    assert resolve_n_jobs(None) == 3
    assert resolve_n_jobs(0) == 3
    assert resolve_n_jobs(-1) == 3
    assert resolve_n_jobs(-2) == 2
    assert resolve_n_jobs(5) == 5


def test_worker_count_ignores_bad_env(monkeypatch) -> None:
    for key in ("ENHANCEPY_N_JOBS", "SLURM_CPUS_PER_TASK", "SLURM_CPUS_ON_NODE", "OMP_NUM_THREADS"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("ENHANCEPY_N_JOBS", "lots")
    assert effective_worker_count() >= 1
