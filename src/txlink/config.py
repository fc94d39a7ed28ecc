"""
Linker and analyzer configuration.

Loads YAML/JSON settings files and returns typed config objects.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet

import yaml

from .types import LinkerOption, MatchPolicy

# Max number of inputs (or outputs) the search can process
MAX_NB_TXOS = 12

# Max duration of a single search, in seconds
MAX_DURATION = 180

DEFAULT_OPTIONS: FrozenSet[LinkerOption] = frozenset(
    {LinkerOption.PRECHECK, LinkerOption.LINKABILITY, LinkerOption.MERGE_INPUTS}
)


@dataclass(frozen=True)
class LinkerConfig:
    """Limits applied by one TxosLinker instance."""

    max_txos: int = MAX_NB_TXOS
    max_duration: float = MAX_DURATION
    match_policy: MatchPolicy = MatchPolicy.OVERWRITE

    def __post_init__(self) -> None:
        if self.max_txos < 1:
            raise ValueError(f"max_txos must be >= 1, got {self.max_txos}")
        if self.max_duration < 0:
            raise ValueError(f"max_duration must be non-negative, got {self.max_duration}")


@dataclass(frozen=True)
class AnalyzerSettings:
    """Settings of the analyzer facade."""

    linker: LinkerConfig = field(default_factory=LinkerConfig)
    options: FrozenSet[LinkerOption] = DEFAULT_OPTIONS

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> AnalyzerSettings:
        linker = LinkerConfig(
            max_txos=int(d.get("max_txos", MAX_NB_TXOS)),
            max_duration=float(d.get("max_duration", MAX_DURATION)),
            match_policy=_parse_match_policy(d.get("match_policy", MatchPolicy.OVERWRITE.value)),
        )
        raw_options = d.get("options")
        if raw_options is None:
            options = DEFAULT_OPTIONS
        else:
            options = frozenset(_parse_option(o) for o in raw_options)
        return cls(linker=linker, options=options)


def _parse_option(name: Any) -> LinkerOption:
    key = str(name).upper()
    if key not in LinkerOption.__members__:
        valid = ", ".join(LinkerOption.__members__)
        raise ValueError(f"Unknown option {name!r}, expected one of: {valid}")
    return LinkerOption[key]


def _parse_match_policy(name: Any) -> MatchPolicy:
    key = str(name).upper()
    if key not in MatchPolicy.__members__:
        valid = ", ".join(MatchPolicy.__members__)
        raise ValueError(f"Unknown match_policy {name!r}, expected one of: {valid}")
    return MatchPolicy[key]


def load_settings(path: str) -> AnalyzerSettings:
    """
    Load analyzer settings from a YAML or JSON file.

    The file must contain a mapping. Recognised keys: max_txos, max_duration,
    match_policy and options (list of option names).
    """
    p = Path(path)
    text = p.read_text(encoding="utf-8")
    obj = yaml.safe_load(text)
    if not isinstance(obj, dict):
        raise ValueError(f"Settings file must be a YAML/JSON object, got {type(obj).__name__}")
    return AnalyzerSettings.from_dict(obj)
