from __future__ import annotations

import os
import sys
from typing import Any, Callable, Optional

from tqdm import tqdm


DEFAULT_BAR_FORMAT = "|{bar:60}|{percentage:3.0f}% ({n_fmt}/{total_fmt}) [{desc}: {elapsed} < {remaining}]"


_OVERRIDE_PROGRESS_ENABLED: Optional[bool] = None


def set_progress_enabled(enabled: Optional[bool]) -> None:
    """Globally override whether progress bars are enabled.

    When set to True/False, this takes precedence over env vars/TTY checks.
    When set to None, falls back to env vars/TTY.
    """

    global _OVERRIDE_PROGRESS_ENABLED
    _OVERRIDE_PROGRESS_ENABLED = enabled


def is_progress_enabled(explicit: Optional[bool] = None) -> bool:
    """Determine whether progress bars should be displayed.

    Priority:
    1) explicit argument (if provided)
    2) global override from `set_progress_enabled`
    3) environment variable ENHANCEPY_PROGRESS (0/1)
    4) only enable when stderr is a TTY
    """
    if explicit is not None:
        return bool(explicit)

    if _OVERRIDE_PROGRESS_ENABLED is not None:
        return bool(_OVERRIDE_PROGRESS_ENABLED)

    env = os.environ.get("ENHANCEPY_PROGRESS", "").strip().lower()
    if env in {"1", "true", "yes", "on"}:
        return True
    if env in {"0", "false", "no", "off"}:
        return False

    try:
        return bool(sys.stderr.isatty())
    except (AttributeError, ValueError):
        return False


def make_progress_bar(
    *,
    total: int,
    desc: str,
    colour: Optional[str] = None,
    enabled: Optional[bool] = None,
    bar_format: str = DEFAULT_BAR_FORMAT,
    **kwargs: Any,
) -> tqdm:
    """Create a consistently-formatted tqdm progress bar."""
    disable = not is_progress_enabled(enabled)
    return tqdm(
        total=int(total),
        desc=str(desc),
        ascii=True,
        colour=colour,
        bar_format=bar_format,
        disable=disable,
        **kwargs,
    )


def planned_stage_count(n_scales: int) -> int:
    """Internal stages run for `n_scales` scales.

    Hessian, eigen-analysis and measure evaluation run once per scale; the
    max-abs combination runs once for every scale after the first.
    """
    n_scales = int(n_scales)
    return 3 * n_scales + max(0, n_scales - 1)


class ProgressAccumulator:
    """Report a monotonically increasing completion fraction over a fixed stage plan.

    The fraction is `stages completed / stages planned`. Each completed stage
    advances an optional callback and an optional tqdm bar.
    """

    def __init__(
        self,
        total_stages: int,
        callback: Optional[Callable[[float], None]] = None,
        *,
        desc: str = "Enhancement",
        enabled: Optional[bool] = None,
    ) -> None:
        self.total_stages = max(1, int(total_stages))
        self.completed = 0
        self.callback = callback
        self._pbar = make_progress_bar(total=self.total_stages, desc=desc, colour="GREEN", enabled=enabled)

    @property
    def fraction(self) -> float:
        return min(1.0, self.completed / self.total_stages)

    def advance(self, stage: str = "") -> float:
        self.completed += 1
        if stage:
            self._pbar.set_description_str(stage, refresh=False)
        self._pbar.update(1)
        fraction = self.fraction
        if self.callback is not None:
            self.callback(fraction)
        return fraction

    def close(self) -> None:
        self._pbar.close()

    def __enter__(self) -> "ProgressAccumulator":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
