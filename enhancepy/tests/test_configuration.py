from __future__ import annotations

import configparser
from pathlib import Path

import numpy as np
import pytest

from enhancepy.core.configuration import configuration
from enhancepy.core.validation import ConfigurationError
from enhancepy.measures import ParameterSet


def _cfg(tmp_path: Path, **sections) -> configparser.ConfigParser:
    image = tmp_path / "image.nii.gz"
    image.write_bytes(b"dummy")

    cfg = configparser.ConfigParser()
    cfg["INPUT"] = {"image_file": str(image)}
    cfg["SCALES"] = {"sigma_minimum": "0.5", "sigma_maximum": "2.0", "number_of_steps": "4"}
    for name, values in sections.items():
        if name in cfg:
            cfg[name].update(values)
        else:
            cfg[name] = values
    return cfg


def test_minimal_config_defaults(tmp_path: Path) -> None:
    c = configuration(_cfg(tmp_path))
    assert c.mask_path == ""
    assert c.background_value == 0
    assert c.measure_name == "descoteaux"
    assert c.enhance == "bright"
    assert c.parameter_policy == "per_scale"
    assert c.frobenius_weight == 0.5
    assert c.parameters is None
    assert c.output_mode == "standard"
    assert c.n_jobs is None
    assert c.DEVICE in {"cpu", "cuda"}
    np.testing.assert_allclose(c.scales, [0.5, 1.0, 1.5, 2.0])


def test_none_like_mask_file_means_no_mask(tmp_path: Path) -> None:
    for v in ["", "n/a", "NA", "none", r"n\a"]:
        c = configuration(_cfg(tmp_path, INPUT={"mask_file": v}))
        assert c.mask_path == ""


def test_missing_mask_file_rejected(tmp_path: Path) -> None:
    cfg = _cfg(tmp_path, INPUT={"mask_file": str(tmp_path / "nope.nii.gz")})
    with pytest.raises(ConfigurationError, match="Mask file not found"):
        configuration(cfg)


def test_missing_image_rejected(tmp_path: Path) -> None:
    cfg = _cfg(tmp_path)
    cfg["INPUT"]["image_file"] = str(tmp_path / "missing.nii.gz")
    with pytest.raises(ConfigurationError, match="File not found"):
        configuration(cfg)


def test_missing_sections_rejected(tmp_path: Path) -> None:
    cfg = _cfg(tmp_path)
    cfg.remove_section("SCALES")
    with pytest.raises(ConfigurationError, match=r"\[SCALES\]"):
        configuration(cfg)


def test_missing_scale_options_listed(tmp_path: Path) -> None:
    cfg = _cfg(tmp_path)
    cfg.remove_option("SCALES", "sigma_maximum")
    cfg["SCALES"]["number_of_steps"] = ""
    with pytest.raises(ConfigurationError) as e:
        configuration(cfg)
    assert "sigma_maximum" in str(e.value)
    assert "number_of_steps" in str(e.value)


@pytest.mark.parametrize(
    "values",
    [
        {"number_of_steps": "0"},
        {"number_of_steps": "2.5"},
        {"sigma_minimum": "-1"},
        {"step_method": "cubic"},
    ],
)
def test_bad_scale_values_rejected(tmp_path: Path, values) -> None:
    with pytest.raises(ConfigurationError):
        configuration(_cfg(tmp_path, SCALES=values))


def test_measure_section_parsed(tmp_path: Path) -> None:
    c = configuration(
        _cfg(
            tmp_path,
            INPUT={"background_value": "1"},
            SCALES={"step_method": "log"},
            MEASURE={"measure": "Krcah", "enhance": "dark", "parameter_policy": "first_scale", "frobenius_weight": "0.25"},
            DEVICE={"DEVICE": "cpu", "n_jobs": "3"},
            OUTPUT={"save_dir": "out", "run_tag": "femur #1"},
            DEBUG={"output_mode": "verbose"},
        )
    )
    assert c.background_value == 1
    assert c.step_method == "logarithmic"
    assert c.measure_name == "krcah"
    assert c.enhance == "dark"
    assert c.parameter_policy == "first_scale"
    assert c.frobenius_weight == 0.25
    assert c.DEVICE == "cpu"
    assert c.n_jobs == 3
    assert c.save_dir == "out"
    assert c.run_tag == "femur__1"
    assert c.output_mode == "verbose"
    assert c.verbose_flag


def test_fixed_policy_requires_parameters(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="alpha, beta, c"):
        configuration(_cfg(tmp_path, MEASURE={"parameter_policy": "fixed"}))

    c = configuration(
        _cfg(tmp_path, MEASURE={"parameter_policy": "fixed", "alpha": "0.4", "beta": "0.6", "c": "12"})
    )
    assert c.parameters == ParameterSet(alpha=0.4, beta=0.6, c=12.0)


@pytest.mark.parametrize(
    "section,values",
    [
        ("MEASURE", {"measure": "sato"}),
        ("MEASURE", {"enhance": "grey"}),
        ("MEASURE", {"parameter_policy": "sometimes"}),
        ("MEASURE", {"frobenius_weight": "0"}),
        ("DEVICE", {"DEVICE": "tpu"}),
        ("DEVICE", {"n_jobs": "many"}),
        ("DEBUG", {"output_mode": "loud"}),
    ],
)
def test_invalid_options_rejected(tmp_path: Path, section: str, values) -> None:
    with pytest.raises(ConfigurationError):
        configuration(_cfg(tmp_path, **{section: values}))


def test_non_numeric_background_value_rejected(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="background_value"):
        configuration(_cfg(tmp_path, INPUT={"background_value": "air"}))


def test_float_background_value_kept(tmp_path: Path) -> None:
    c = configuration(_cfg(tmp_path, INPUT={"background_value": "1.5"}))
    assert c.background_value == 1.5
