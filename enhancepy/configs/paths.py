from __future__ import annotations

from pathlib import Path


def get_configs_dir() -> Path:
    """Return the on-disk directory containing shipped config templates.

    Works for editable installs and installed wheels.
    """
    import importlib.resources as resources

    return Path(str(resources.files("enhancepy.configs")))


def resolve_config_path(raw: str) -> str:
    """Resolve a config path, falling back to the shipped templates.

    If `raw` exists on disk it is returned unchanged. A bare file name that
    matches a shipped template resolves to that template. Anything else is
    returned as given.
    """

    if not raw:
        return raw

    if Path(raw).exists():
        return raw

    candidate = get_configs_dir() / Path(raw).name
    if candidate.exists():
        return str(candidate)

    return raw
