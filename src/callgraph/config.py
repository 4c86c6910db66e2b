"""Settings — defaults, overridable from the environment and the CLI.

Usage:
    from callgraph.config import Settings

    settings = Settings.from_env()          # reads CALLGRAPH_* variables
    settings = settings.replace(grid_size=0.2)

Recognised environment variables:
    CALLGRAPH_GRID_SIZE         target spacing between layout rows/columns
    CALLGRAPH_VIEWPORT_INSET    margin kept free around the fitted graph
    CALLGRAPH_LAYOUT_PROGRAM    Graphviz program used for layout ("dot")
    CALLGRAPH_MAX_WORKERS       parallel oracle queries per BFS round
    CALLGRAPH_WHEEL_ZOOM_BASE   zoom factor of one mouse-wheel notch
    CALLGRAPH_INCLUDE_TESTS     include test files in whole-project scope
"""

import dataclasses
import os
from dataclasses import dataclass
from typing import Callable, Mapping, Optional

ENV_PREFIX = "CALLGRAPH_"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class Settings:
    """Tunable knobs of the build and view pipeline."""

    grid_size: float = 0.1
    viewport_inset: float = 0.1
    layout_program: str = "dot"
    max_workers: int = 4
    wheel_zoom_base: float = 1.25
    include_tests: bool = True

    def __post_init__(self):
        if self.grid_size <= 0:
            raise ValueError(f"grid_size must be positive, got {self.grid_size}")
        if not 0 <= self.viewport_inset < 0.5:
            raise ValueError(f"viewport_inset must be in [0, 0.5), got {self.viewport_inset}")
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {self.max_workers}")
        if self.wheel_zoom_base <= 1:
            raise ValueError(f"wheel_zoom_base must be greater than 1, got {self.wheel_zoom_base}")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from CALLGRAPH_* environment variables.

        Args:
            environ: Mapping to read from (default: os.environ)

        Returns:
            Settings with every variable that is set applied over the defaults

        Raises:
            ValueError: If a variable is set to a value of the wrong type
        """
        environ = os.environ if environ is None else environ
        overrides = {}
        for field in dataclasses.fields(cls):
            name = ENV_PREFIX + field.name.upper()
            raw = environ.get(name)
            if raw is None or raw.strip() == "":
                continue
            overrides[field.name] = _parse(name, raw.strip(), _CONVERTERS[field.name])
        return cls(**overrides)

    def replace(self, **changes) -> "Settings":
        """Return a copy with the given fields changed (None values are ignored)."""
        changes = {k: v for k, v in changes.items() if v is not None}
        return dataclasses.replace(self, **changes)


def _parse_bool(raw: str) -> bool:
    lowered = raw.lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(raw)


_CONVERTERS: dict[str, Callable[[str], object]] = {
    "grid_size": float,
    "viewport_inset": float,
    "layout_program": str,
    "max_workers": int,
    "wheel_zoom_base": float,
    "include_tests": _parse_bool,
}


def _parse(name: str, raw: str, convert: Callable[[str], object]) -> object:
    try:
        return convert(raw)
    except ValueError:
        raise ValueError(f"Invalid value for {name}: {raw!r}") from None
