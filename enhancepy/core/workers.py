from __future__ import annotations

import os
from typing import Optional

import psutil


def effective_worker_count() -> int:
    """Worker count (use scheduler hints when present)."""

    for key in ("ENHANCEPY_N_JOBS", "SLURM_CPUS_PER_TASK", "SLURM_CPUS_ON_NODE", "OMP_NUM_THREADS"):
        v = os.environ.get(key, "").strip()
        if not v:
            continue
        try:
            n = int(v)
        except ValueError:
            continue
        if n > 0:
            return n
    return int(psutil.cpu_count(logical=False) or psutil.cpu_count() or 1)


def resolve_n_jobs(n_jobs: Optional[int] = None) -> int:
    """Resolve a requested worker count.

    `None` or `0` means "auto"; negative values follow the joblib convention
    (-1 = all workers, -2 = all but one, ...).
    """

    available = effective_worker_count()
    if n_jobs is None or int(n_jobs) == 0:
        return available
    n_jobs = int(n_jobs)
    if n_jobs < 0:
        return max(1, available + 1 + n_jobs)
    return n_jobs
