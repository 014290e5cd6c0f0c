"""Multi-scale Hessian-based enhancement.

For every scale sigma in the schedule:

1. compute the scale-normalised Hessian of the input image;
2. compute its eigenvalues in the order the measure expects;
3. bind measure parameters (re-estimated, reused or fixed, see
   `parameter_policy`);
4. evaluate the measure at every voxel (0 outside the mask);
5. fold the response into the running result with max(|running|, |new|).

A single scale returns its response unchanged. With more than one scale the
output is an unsigned enhancement strength.

Parameter policies:

- `per_scale` (default): estimate parameters from each scale's own
  eigenvalue image;
- `first_scale`: estimate once from the first scale and reuse them;
- `fixed`: use `EnhancementPipeline.parameters` for every scale.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

import numpy as np

from enhancepy.core.estimation import DescoteauxParameterEstimator
from enhancepy.core.evaluation import MeasureEvaluationStage
from enhancepy.core.hessian import GaussianHessian, SymmetricEigenAnalysis
from enhancepy.core.logfmt import DETAIL, ensure_custom_levels_registered
from enhancepy.core.masks import LabelMask, as_mask
from enhancepy.core.progress import ProgressAccumulator, planned_stage_count
from enhancepy.core.regions import Region
from enhancepy.core.schedule import LINEAR, generate_scales
from enhancepy.core.validation import ConfigurationError, InvalidArgumentError, validate_array
from enhancepy.measures.base import EigenMeasure, ParameterSet

PER_SCALE = 'per_scale'
FIRST_SCALE = 'first_scale'
FIXED = 'fixed'
PARAMETER_POLICIES = (PER_SCALE, FIRST_SCALE, FIXED)


def normalize_parameter_policy(policy: str) -> str:
    key = str(policy).strip().lower().replace('-', '_')
    if key in {'per_scale', 'scale', 'each'}:
        return PER_SCALE
    if key in {'first_scale', 'once', 'global'}:
        return FIRST_SCALE
    if key in {'fixed', 'manual'}:
        return FIXED
    raise InvalidArgumentError(
        f"Invalid parameter policy: '{policy}'\n"
        f"Valid options: per_scale | first_scale | fixed"
    )


@dataclass
class EnhancementPipeline:
    """Collaborators bound for one multi-scale enhancement run."""

    stage: Optional[MeasureEvaluationStage] = None
    scales: Sequence[float] = ()
    hessian: Callable = field(default_factory=GaussianHessian)
    eigen_analysis: Callable = field(default_factory=SymmetricEigenAnalysis)
    estimator: Optional[Callable] = field(default_factory=DescoteauxParameterEstimator)
    parameters: Optional[ParameterSet] = None
    parameter_policy: str = PER_SCALE

    @classmethod
    def from_schedule(
        cls,
        measure: EigenMeasure,
        sigma_minimum: float,
        sigma_maximum: float,
        number_of_steps: int,
        step_method: str = LINEAR,
        *,
        n_jobs: Optional[int] = None,
        **kwargs,
    ) -> "EnhancementPipeline":
        return cls(
            stage=MeasureEvaluationStage(measure, n_jobs=n_jobs),
            scales=generate_scales(sigma_minimum, sigma_maximum, number_of_steps, step_method),
            **kwargs,
        )

    def run(self, image, mask=None, *, spacing=None, progress=None, show_progress=None) -> np.ndarray:
        return enhance(image, self, mask, spacing=spacing, progress=progress, show_progress=show_progress)


def _check_pipeline(pipeline: EnhancementPipeline) -> tuple:
    if pipeline.stage is None:
        raise ConfigurationError("measure stage not set")

    scales = np.atleast_1d(np.asarray(pipeline.scales, dtype=np.float64))
    if scales.size < 1:
        raise ConfigurationError("no scales provided")
    if np.any(~np.isfinite(scales)) or np.any(scales <= 0):
        raise InvalidArgumentError(f"Scales must be positive and finite; got {scales.tolist()}")

    policy = normalize_parameter_policy(pipeline.parameter_policy)
    if policy == FIXED and pipeline.parameters is None:
        raise ConfigurationError("parameters not set (required by the fixed parameter policy)")
    if policy != FIXED and pipeline.estimator is None:
        raise ConfigurationError("parameter estimator not set")
    return scales, policy


def _resolve_background_value(pipeline: EnhancementPipeline, mask) -> Any:
    """The one label treated as background by both estimation and evaluation.

    The estimator's setting wins; otherwise the label mask's own value is used.
    """
    estimator_value = getattr(pipeline.estimator, 'background_value', None)
    if estimator_value is not None:
        return estimator_value
    return getattr(mask, 'background_value', None)


def enhance(
    image,
    pipeline: EnhancementPipeline,
    mask=None,
    *,
    spacing: Optional[Sequence[float]] = None,
    progress: Optional[Callable[[float], None]] = None,
    show_progress: Optional[bool] = None,
) -> np.ndarray:
    """Run `pipeline` over `image` and return the scale-combined response.

    All preconditions are checked before any scale is processed. `progress`
    receives the completed fraction of the planned internal stages.
    """
    ensure_custom_levels_registered()
    scales, policy = _check_pipeline(pipeline)

    image = validate_array(image, "input image")
    mask = as_mask(mask, getattr(pipeline.estimator, 'background_value', None))
    background_value = _resolve_background_value(pipeline, mask)
    if isinstance(mask, LabelMask) and mask.background_value != background_value:
        # Estimation and evaluation must exclude the same label.
        mask = LabelMask(mask.labels, background_value, mask.region.index)
    if mask is not None:
        mask.check_covers(Region.from_shape(image.shape))

    stage = pipeline.stage
    order = stage.eigenvalue_order
    n_scales = int(scales.size)

    logging.info(
        f"Multi-scale enhancement: measure={type(stage.measure).__name__}, scales={n_scales}, "
        f"sigma=[{scales[0]:.4g} .. {scales[-1]:.4g}], parameter_policy={policy}"
    )

    params = pipeline.parameters if policy == FIXED else None
    result = None
    with ProgressAccumulator(planned_stage_count(n_scales), progress, enabled=show_progress) as tracker:
        for level, sigma in enumerate(scales):
            hessian_image = pipeline.hessian(image, float(sigma), spacing)
            tracker.advance(f"Hessian (sigma={sigma:.3g})")

            eigen_image = pipeline.eigen_analysis(hessian_image, order)
            del hessian_image
            tracker.advance(f"Eigen-analysis (sigma={sigma:.3g})")

            if policy == PER_SCALE or params is None:
                params = pipeline.estimator(eigen_image, mask)

            logging.log(
                DETAIL,
                f"Scale {level + 1}/{n_scales}: sigma={sigma:.4g}, "
                f"alpha={params.alpha:.4g}, beta={params.beta:.4g}, c={params.c:.4g}",
            )

            response = stage.apply(eigen_image, params, mask, background_value=background_value)
            del eigen_image
            tracker.advance(f"Measure (sigma={sigma:.3g})")

            if result is None:
                result = response
                continue

            np.abs(result, out=result)
            np.maximum(result, np.abs(response), out=result)
            tracker.advance("Max-abs combine")

    return result
