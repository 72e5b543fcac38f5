"""
Plain key-value projections of simulation entities.

Every entity exposes ``to_dict(flags)``; the flags select which fields are
included:

  STATIC   configuration that does not change during an epoch
  DYNAMIC  per-tick state (positions, inputs/outputs, step counter)
  DEBUG    everything, plus derived data useful when inspecting a run
  DB       what is needed to rebuild the simulation from storage
"""

import json
from enum import Flag, auto

from exceptions import ConfigurationError


class SerializationFlags(Flag):
    NONE = 0
    STATIC = auto()
    DYNAMIC = auto()
    DEBUG = auto()
    DB = auto()


def has_flag(flags, flag) -> bool:
    """True if `flag` is set in `flags`; DEBUG implies STATIC and DYNAMIC."""
    if flags is None:
        return False
    if flag in flags:
        return True
    return (flag in (SerializationFlags.STATIC, SerializationFlags.DYNAMIC)
            and SerializationFlags.DEBUG in flags)


def to_json(entity, flags=SerializationFlags.STATIC | SerializationFlags.DYNAMIC,
            indent=None) -> str:
    return json.dumps(entity.to_dict(flags), indent=indent)


def load_json(path: str) -> dict:
    """Read a JSON run file."""
    try:
        with open(path) as f:
            data = json.load(f)
    except (OSError, ValueError) as exc:
        raise ConfigurationError(f"Cannot read run file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Run file {path} must hold a JSON object")
    return data
