from __future__ import annotations

import logging
import os

import torch

from enhancepy.core.logfmt import DETAIL
from enhancepy.core.multiscale import FIXED, normalize_parameter_policy
from enhancepy.core.schedule import generate_scales, normalize_step_method
from enhancepy.core.validation import ConfigurationError, InvalidArgumentError
from enhancepy.measures import MEASURES
from enhancepy.measures.base import ParameterSet, normalize_enhance_type

NONE_LIKE = {'n/a', 'n\\a', 'na', 'none'}


class configuration:
    def __init__(self, cfg_file) -> None:
        self.cfg_file = cfg_file
        self._validate_config(cfg_file)  # Validate before setup
        self._setup_config(cfg_file)
        pass

    @staticmethod
    def _normalize_output_mode(value: str | None) -> str:
        if value is None:
            return 'standard'
        v = str(value).strip().lower()
        if v in {'quiet', 'q'}:
            return 'quiet'
        if v in {'standard', 'std', 'default'}:
            return 'standard'
        if v in {'verbose', 'v'}:
            return 'verbose'
        if v in {'debug', 'dbg'}:
            return 'debug'
        raise ConfigurationError(
            "Invalid output_mode value.\n"
            "Valid options: quiet | standard | verbose | debug\n"
            f"Current value: '{value}'"
        )

    @property
    def output_mode(self) -> str:
        return str(getattr(self, '_output_mode', 'standard'))

    @staticmethod
    def _get_float(cfg, section: str, option: str, *, positive: bool = False) -> float:
        raw = cfg[section][option]
        try:
            value = float(raw)
        except ValueError:
            raise ConfigurationError(
                f"Invalid {option} value: must be a number.\n"
                f"Current value: '{raw}'"
            )
        if positive and value <= 0:
            raise ConfigurationError(
                f"Invalid {option}: {value}\n"
                f"[{section}] {option} must be positive."
            )
        return value

    def _validate_config(self, input_cfg_file) -> None:
        """Validate configuration file for required sections/options and file paths."""
        required_sections = ['INPUT', 'SCALES']
        for section in required_sections:
            if not input_cfg_file.has_section(section):
                raise ConfigurationError(
                    f"Missing required section [{section}] in configuration file.\n"
                    f"Check your .ini file and ensure all required sections are present."
                )

        if not input_cfg_file.has_option('INPUT', 'image_file'):
            raise ConfigurationError(
                "Missing required field 'image_file' in [INPUT] section.\n"
                "This should specify the scalar input image (NIfTI format).\n"
                "Add 'image_file = /path/to/file' to your configuration."
            )

        image_path = input_cfg_file['INPUT']['image_file']
        if not os.path.exists(image_path):
            raise ConfigurationError(
                f"File not found: {image_path}\n"
                f"Specified in configuration as 'image_file'.\n"
                f"Check that the path is correct and the file exists."
            )

        if input_cfg_file.has_option('INPUT', 'mask_file'):
            mask_path = str(input_cfg_file['INPUT']['mask_file']).strip()
            if mask_path and mask_path.lower() not in NONE_LIKE:
                if not os.path.exists(mask_path):
                    raise ConfigurationError(
                        f"Mask file not found: {mask_path}\n"
                        f"Specified in configuration as 'mask_file'.\n"
                        f"Leave it blank (or 'none') to process the whole image, or provide a valid path."
                    )

        raw_background = str(input_cfg_file['INPUT'].get('background_value', '0')).strip()
        try:
            float(raw_background)
        except ValueError:
            raise ConfigurationError(
                "Invalid background_value: must be a number (the mask label to exclude).\n"
                f"Current value: '{raw_background}'\n"
                "Set [INPUT] background_value to the label of voxels outside the region of interest (default 0)."
            )

        missing: list[str] = []
        for opt, desc in {
            'sigma_minimum': 'Smallest scale (physical units)',
            'sigma_maximum': 'Largest scale (physical units)',
            'number_of_steps': 'Number of scales',
        }.items():
            if not input_cfg_file.has_option('SCALES', opt):
                missing.append(f"Missing [SCALES] {opt} ({desc})")
            elif str(input_cfg_file.get('SCALES', opt, fallback='')).strip() == '':
                missing.append(f"Empty [SCALES] {opt} ({desc})")
        if missing:
            raise ConfigurationError(
                "Configuration missing required scale options.\n\n" + "\n".join(f"- {m}" for m in missing)
            )

        sigma_min = self._get_float(input_cfg_file, 'SCALES', 'sigma_minimum', positive=True)
        sigma_max = self._get_float(input_cfg_file, 'SCALES', 'sigma_maximum', positive=True)
        try:
            steps = int(input_cfg_file['SCALES']['number_of_steps'])
        except ValueError:
            raise ConfigurationError(
                "Invalid number_of_steps value: must be an integer.\n"
                f"Current value: '{input_cfg_file['SCALES']['number_of_steps']}'"
            )
        step_method = input_cfg_file['SCALES'].get('step_method', 'linear')
        try:
            generate_scales(sigma_min, sigma_max, steps, step_method)
        except InvalidArgumentError as e:
            raise ConfigurationError(f"Invalid [SCALES] section.\n{e}")

        if input_cfg_file.has_section('MEASURE'):
            measure_section = input_cfg_file['MEASURE']
            measure_name = str(measure_section.get('measure', 'descoteaux')).strip().lower()
            if measure_name not in MEASURES:
                raise ConfigurationError(
                    f"Invalid measure: '{measure_name}'\n"
                    f"Valid options are: {', '.join(MEASURES)}\n"
                    f"Update your configuration to use one of these measures."
                )

            for key, normalizer in (('enhance', normalize_enhance_type), ('parameter_policy', normalize_parameter_policy)):
                if key in measure_section:
                    try:
                        normalizer(measure_section[key])
                    except InvalidArgumentError as e:
                        raise ConfigurationError(str(e))

            if 'frobenius_weight' in measure_section:
                self._get_float(input_cfg_file, 'MEASURE', 'frobenius_weight', positive=True)

            policy = normalize_parameter_policy(measure_section.get('parameter_policy', 'per_scale'))
            if policy == FIXED:
                missing = [k for k in ('alpha', 'beta', 'c') if k not in measure_section]
                if missing:
                    raise ConfigurationError(
                        "parameter_policy = fixed requires explicit measure parameters.\n"
                        f"Add {', '.join(missing)} to the [MEASURE] section."
                    )
                for k in ('alpha', 'beta', 'c'):
                    self._get_float(input_cfg_file, 'MEASURE', k)

        if input_cfg_file.has_section('DEVICE'):
            dev = str(input_cfg_file.get('DEVICE', 'DEVICE', fallback='')).strip().lower()
            if dev not in {'', 'auto', 'cpu', 'cuda'}:
                raise ConfigurationError(
                    f"Invalid [DEVICE] DEVICE: '{dev}'\n" "Valid values: auto | cpu | cuda"
                )
            raw_jobs = str(input_cfg_file.get('DEVICE', 'n_jobs', fallback='')).strip()
            if raw_jobs and raw_jobs.lower() != 'auto':
                try:
                    int(raw_jobs)
                except ValueError:
                    raise ConfigurationError(
                        "Invalid [DEVICE] n_jobs value: must be an integer or 'auto'.\n"
                        f"Current value: '{raw_jobs}'"
                    )

        logging.log(DETAIL, "Configuration validation passed")

    def _setup_config(self, input_cfg_file) -> None:
        # Input Parameters
        self.image_path = input_cfg_file['INPUT']['image_file']
        self.mask_path = str(input_cfg_file['INPUT'].get('mask_file', '')).strip()
        if self.mask_path.lower() in NONE_LIKE:
            self.mask_path = ''
        raw_background = str(input_cfg_file['INPUT'].get('background_value', '0')).strip()
        try:
            self.background_value = int(raw_background)
        except ValueError:
            self.background_value = float(raw_background)

        # Output mode (controls terminal verbosity + progress rendering).
        raw_output_mode = input_cfg_file.get('DEBUG', 'output_mode', fallback=None)
        self._output_mode = self._normalize_output_mode(raw_output_mode)
        self.verbose_flag = bool(self._output_mode in {'verbose', 'debug'})

        # Scale schedule
        self.sigma_minimum = float(input_cfg_file['SCALES']['sigma_minimum'])
        self.sigma_maximum = float(input_cfg_file['SCALES']['sigma_maximum'])
        self.number_of_steps = int(input_cfg_file['SCALES']['number_of_steps'])
        self.step_method = normalize_step_method(input_cfg_file['SCALES'].get('step_method', 'linear'))
        self.scales = generate_scales(self.sigma_minimum, self.sigma_maximum, self.number_of_steps, self.step_method)

        # Measure
        measure_section = input_cfg_file['MEASURE'] if input_cfg_file.has_section('MEASURE') else {}
        self.measure_name = str(measure_section.get('measure', 'descoteaux')).strip().lower()
        self.enhance = normalize_enhance_type(measure_section.get('enhance', 'bright'))
        self.parameter_policy = normalize_parameter_policy(measure_section.get('parameter_policy', 'per_scale'))
        self.frobenius_weight = float(measure_section.get('frobenius_weight', 0.5))
        if self.parameter_policy == FIXED:
            self.parameters = ParameterSet(
                alpha=float(measure_section['alpha']),
                beta=float(measure_section['beta']),
                c=float(measure_section['c']),
            )
        else:
            self.parameters = None

        # Computing
        default_device = 'cuda' if torch.cuda.is_available() else 'cpu'
        cfg_device = input_cfg_file.get('DEVICE', 'DEVICE', fallback=None) if input_cfg_file.has_section('DEVICE') else None
        device_norm = (str(cfg_device).strip().lower() if cfg_device is not None else '')
        if device_norm in {'', 'auto'}:
            device_norm = default_device
        elif device_norm == 'cuda' and not torch.cuda.is_available():
            logging.warning("[DEVICE] DEVICE=cuda requested but CUDA is not available; falling back to cpu")
            device_norm = 'cpu'
        self.DEVICE = device_norm

        raw_jobs = ''
        if input_cfg_file.has_section('DEVICE'):
            raw_jobs = str(input_cfg_file.get('DEVICE', 'n_jobs', fallback='')).strip().lower()
        self.n_jobs = None if raw_jobs in {'', 'auto'} else int(raw_jobs)

        # Output
        self.save_dir = None
        self.run_tag = None
        if input_cfg_file.has_section('OUTPUT'):
            raw_save_dir = str(input_cfg_file.get('OUTPUT', 'save_dir', fallback='') or '').strip()
            raw_run_tag = str(input_cfg_file.get('OUTPUT', 'run_tag', fallback='') or '').strip()
            self.save_dir = raw_save_dir or None
            if raw_run_tag:
                # Keep filenames filesystem-friendly.
                self.run_tag = ''.join(
                    (c if (c.isalnum() or c in {'-', '_'}) else '_') for c in raw_run_tag
                ).strip('_') or None

        return
