"""Provenance and run-manifest utilities.

Writes `run_manifest.json` next to the saved outputs. Provenance never aborts
a computation: failures are logged and ignored.
"""

from __future__ import annotations

import importlib
import json
import logging
import platform
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import torch


def safe_version(mod_name: str) -> str:
    try:
        mod = importlib.import_module(mod_name)
        return getattr(mod, "__version__", "unknown")
    except ImportError:
        return "unavailable"


def build_manifest(run: Any, *, enhancepy_version: str) -> dict[str, Any]:
    """Collect the JSON-serialisable description of a finished run."""

    configuration = getattr(run, "configuration", None)
    cfg = getattr(configuration, "cfg_file", None)
    cfg_source = cfg.get("DEBUG", "cfg_source", fallback=None) if cfg is not None and cfg.has_section("DEBUG") else None
    save_dir = getattr(run, "save_dir", None)

    params = getattr(configuration, "parameters", None)
    image = getattr(run, "image", None)
    mask = getattr(run, "mask", None)

    outputs: list[str] = []
    if save_dir:
        outputs = sorted(p.name for p in Path(save_dir).glob("*.nii.gz"))

    return {
        "schema_version": 1,
        "created_utc": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        "run_started_utc": getattr(run, "_run_started_utc", None),
        "run_finished_utc": getattr(run, "_run_finished_utc", None),
        "total_runtime_s": getattr(run, "_total_runtime_s", None),
        "save_dir": save_dir,
        "cfg_source": cfg_source,
        "output_mode": str(getattr(configuration, "output_mode", "standard")),
        "device": getattr(configuration, "DEVICE", None),
        "n_jobs": getattr(configuration, "n_jobs", None),
        "config_selected": {
            "measure": getattr(configuration, "measure_name", None),
            "enhance": getattr(configuration, "enhance", None),
            "parameter_policy": getattr(configuration, "parameter_policy", None),
            "frobenius_weight": getattr(configuration, "frobenius_weight", None),
            "fixed_parameters": params.as_dict() if params is not None else None,
            "step_method": getattr(configuration, "step_method", None),
            "scales": [float(s) for s in getattr(configuration, "scales", [])],
            "background_value": getattr(configuration, "background_value", None),
        },
        "inputs": {
            "image_file": getattr(configuration, "image_path", None),
            "mask_file": getattr(configuration, "mask_path", None) or None,
        },
        "data": {
            "image_shape": [int(s) for s in image.shape] if image is not None else None,
            "spacing": [float(s) for s in getattr(run, "spacing", ())] or None,
            "mask_provided": mask is not None,
        },
        "timings_s": dict(getattr(run, "_timings", {}) or {}),
        "runtime": {
            "enhancepy_version": str(enhancepy_version),
            "python": sys.version.split()[0],
            "platform": platform.platform(),
            "numpy": safe_version("numpy"),
            "scipy": safe_version("scipy"),
            "torch": safe_version("torch"),
            "nibabel": safe_version("nibabel"),
            "joblib": safe_version("joblib"),
        },
        "cuda": {"available": bool(torch.cuda.is_available())},
        "provenance": {"argv": getattr(run, "_argv_str", None)},
        "artifacts": {
            "analysis_config_ini": str(Path(save_dir) / "analysis_config.ini") if save_dir else None,
            "log": str(Path(save_dir) / "log") if save_dir else None,
            "outputs_nii_gz": outputs,
        },
    }


def write_run_manifest(run: Any, *, enhancepy_version: str) -> None:
    """Write `run_manifest.json` into `run.save_dir`. Failures are logged and ignored."""

    save_dir = getattr(run, "save_dir", None)
    if not isinstance(save_dir, str) or not save_dir:
        return
    try:
        manifest = build_manifest(run, enhancepy_version=enhancepy_version)
        out_path = Path(save_dir) / "run_manifest.json"
        out_path.write_text(json.dumps(manifest, indent=2, sort_keys=True), encoding="utf-8")
        logging.info(f"Run manifest saved to: {out_path}")
    except (OSError, TypeError, ValueError):
        logging.exception("Failed to write run_manifest.json")
