from __future__ import annotations

import configparser
import logging
import os
import platform
import shlex
import sys
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import numpy as np
import torch

from enhancepy._version import __version__
from enhancepy.configs.paths import resolve_config_path
from enhancepy.core import io
from enhancepy.core.configuration import configuration
from enhancepy.core.estimation import DescoteauxParameterEstimator
from enhancepy.core.hessian import GaussianHessian, SymmetricEigenAnalysis
from enhancepy.core.logfmt import EnhanceFormatter, STATUS, level_for_output_mode, log_banner
from enhancepy.core.multiscale import EnhancementPipeline
from enhancepy.core.evaluation import MeasureEvaluationStage
from enhancepy.core.progress import set_progress_enabled
from enhancepy.core.provenance import safe_version, write_run_manifest
from enhancepy.core.validation import ConfigurationError
from enhancepy.measures import get_measure


class EnhancePy:
    """One configured enhancement run: load -> calc -> save."""

    def __init__(self, cfg_file: configparser.ConfigParser) -> None:
        self.configuration = configuration(cfg_file)
        self.result: Optional[np.ndarray] = None
        self.output_path: Optional[str] = None
        self._timings: dict[str, float] = {}
        self._argv_str: Optional[str] = None
        self._run_started_utc: Optional[str] = None
        self._run_finished_utc: Optional[str] = None
        self._total_runtime_s: Optional[float] = None
        self.configure_logging()

    def _results_dir(self) -> Path:
        cfg = self.configuration.cfg_file
        base_dir = Path(self.configuration.image_path).parent.absolute()
        if self.configuration.save_dir:
            save_dir = Path(self.configuration.save_dir)
            if not save_dir.is_absolute():
                cfg_source = cfg.get('DEBUG', 'cfg_source', fallback=None) if cfg.has_section('DEBUG') else None
                save_dir = (Path(cfg_source).resolve().parent if cfg_source else Path.cwd()) / save_dir
            base_dir = save_dir

        stamp = datetime.now().strftime('%Y%m%d_%H%M')
        prefix = f"{stamp}_" + (f"{self.configuration.run_tag}_" if self.configuration.run_tag else "")
        return base_dir / f"{prefix}{self.configuration.measure_name.capitalize()}_Enhancement_Results"

    def configure_logging(self) -> None:
        self.save_dir = str(self._results_dir())
        os.makedirs(self.save_dir, exist_ok=True)

        level = level_for_output_mode(self.configuration.output_mode)

        # The log file always keeps at least standard output.
        file_handler = logging.FileHandler(os.path.join(self.save_dir, 'log'), mode='w', encoding='utf-8')
        file_handler.setLevel(min(level, logging.INFO))
        file_handler.setFormatter(EnhanceFormatter())

        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(EnhanceFormatter())

        logging.basicConfig(
            level=min(level, logging.INFO),
            handlers=[file_handler, console_handler],
            force=True,
        )

        if self.configuration.output_mode == 'quiet':
            set_progress_enabled(False)

        if self.configuration.verbose_flag:
            self._log_verbose_runtime_environment()

        log_banner('Input Parameters')
        logging.info(f"  Image            : {self.configuration.image_path}")
        logging.info(f"  Mask             : {self.configuration.mask_path or 'none'}")
        logging.info(f"  Background Value : {self.configuration.background_value}")
        logging.info(f"  Measure          : {self.configuration.measure_name} ({self.configuration.enhance})")
        logging.info(f"  Parameter Policy : {self.configuration.parameter_policy}")
        logging.info(f"  Scales           : {', '.join(f'{s:.4g}' for s in self.configuration.scales)}")
        logging.info(f"  Step Method      : {self.configuration.step_method}")
        logging.info(f"  Frobenius Weight : {self.configuration.frobenius_weight}")
        if self.configuration.parameters is not None:
            p = self.configuration.parameters
            logging.info(f"  Fixed Parameters : alpha={p.alpha}, beta={p.beta}, c={p.c}")
        logging.info(f"  DEVICE           : {self.configuration.DEVICE}")
        logging.info(f"  n_jobs           : {self.configuration.n_jobs if self.configuration.n_jobs is not None else 'auto'}")
        logging.info(f"  Results          : {self.save_dir}")

    def _log_verbose_runtime_environment(self) -> None:
        log_banner('Runtime Environment')
        logging.info(f"  EnhancePy Version : {__version__}")
        logging.info(f"  Python            : {sys.version.split()[0]}")
        logging.info(f"  Platform          : {platform.platform()}")
        logging.info(f"  NumPy             : {safe_version('numpy')}")
        logging.info(f"  SciPy             : {safe_version('scipy')}")
        logging.info(f"  PyTorch           : {safe_version('torch')}")
        logging.info(f"  NiBabel           : {safe_version('nibabel')}")
        self._argv_str = shlex.join(sys.argv)
        logging.info(f"  Command           : {self._argv_str}")
        logging.info(f"  CUDA Available    : {torch.cuda.is_available()}")

    def build_pipeline(self) -> EnhancementPipeline:
        cfg = self.configuration
        measure = get_measure(cfg.measure_name, enhance=cfg.enhance)
        return EnhancementPipeline(
            stage=MeasureEvaluationStage(measure, n_jobs=cfg.n_jobs),
            scales=cfg.scales,
            hessian=GaussianHessian(),
            eigen_analysis=SymmetricEigenAnalysis(device=cfg.DEVICE),
            estimator=DescoteauxParameterEstimator(
                cfg.frobenius_weight, cfg.background_value, n_jobs=cfg.n_jobs
            ),
            parameters=cfg.parameters,
            parameter_policy=cfg.parameter_policy,
        )

    def load(self) -> None:
        t0 = time.time()
        self.image, self.header, self.affine, self.spacing = io.load_image(self.configuration.image_path)
        logging.info(f"Loaded image {Path(self.configuration.image_path).name}: shape={self.image.shape}, spacing={self.spacing}")

        self.mask = None
        if self.configuration.mask_path:
            self.mask = io.load_mask(self.configuration.mask_path, expected_shape=self.image.shape)
            included = int(np.count_nonzero(self.mask != self.configuration.background_value))
            logging.info(f"Loaded mask {Path(self.configuration.mask_path).name}: {included:,} foreground voxels")
        self._timings['load'] = time.time() - t0

    def calc(self) -> None:
        t0 = time.time()
        pipeline = self.build_pipeline()
        self.result = pipeline.run(self.image, self.mask, spacing=self.spacing)
        self._timings['calc'] = time.time() - t0
        logging.log(STATUS, f"Enhancement finished in {self._timings['calc']:.2f} sec")

    def save(self) -> None:
        logging.info(f"Saving results to: {self.save_dir}")
        stem = io.output_stem(self.configuration.image_path)
        out_path = os.path.join(self.save_dir, f"{stem}_{self.configuration.measure_name}.nii.gz")
        self.output_path = io.save_image(self.result, out_path, affine=self.affine, header=self.header)
        logging.info(f"Enhanced image saved: {os.path.basename(out_path)}")

        config_save_path = os.path.join(self.save_dir, 'analysis_config.ini')
        with open(config_save_path, 'w', encoding='utf-8') as configfile:
            self.configuration.cfg_file.write(configfile)
        logging.info(f"Configuration saved to: {config_save_path}")

    def __call__(self) -> np.ndarray:
        log_banner(f'Starting {self.configuration.measure_name.capitalize()} Enhancement', level=STATUS)
        self._run_started_utc = datetime.now(timezone.utc).isoformat(timespec='seconds')
        start_t = time.time()

        self.load()
        self.calc()
        self.save()

        self._total_runtime_s = float(time.time() - start_t)
        self._run_finished_utc = datetime.now(timezone.utc).isoformat(timespec='seconds')
        write_run_manifest(self, enhancepy_version=__version__)
        return self.result


def run(cfg_dct):
    """Entrypoint used by the CLI to run an enhancement from a config path."""
    cfg_path = cfg_dct.get('cfg_path') if isinstance(cfg_dct, dict) else getattr(cfg_dct, 'cfg_path', None)
    if not cfg_path:
        raise ConfigurationError(
            "No configuration file given.\n"
            "Usage: EnhancePy run --cfg_path path/to/config.ini"
        )
    cfg_path = resolve_config_path(str(cfg_path))

    input_cfg_file = configparser.ConfigParser()
    if not input_cfg_file.read(cfg_path):
        raise ConfigurationError(f"Could not read configuration file: {cfg_path}")

    if not input_cfg_file.has_section('DEBUG'):
        input_cfg_file.add_section('DEBUG')
    input_cfg_file.set('DEBUG', 'cfg_source', str(cfg_path))

    output_mode = cfg_dct.get('output_mode') if isinstance(cfg_dct, dict) else getattr(cfg_dct, 'output_mode', None)
    if output_mode:
        input_cfg_file.set('DEBUG', 'output_mode', str(output_mode))

    start = time.time()
    result = EnhancePy(input_cfg_file)()
    end = time.time()
    logging.info(f"Total Runtime: {round(end - start, 4)} sec")
    return result
