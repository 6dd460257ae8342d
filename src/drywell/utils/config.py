# src/drywell/utils/config.py
from __future__ import annotations

from dataclasses import fields, is_dataclass
from pathlib import Path
from typing import Any, Dict

import numpy as np
import yaml


def resolve_config_path(path: Path, *, base_dir: Path | None = None) -> Path:
    """
    Resolve a config-relative path:
      1) absolute paths are returned unchanged
      2) relative paths are resolved against base_dir (the YAML file's folder)
         when it exists there, else against the CWD
    """
    p = Path(path).expanduser()
    if p.is_absolute():
        return p
    if base_dir is not None:
        cand = (Path(base_dir) / p).resolve()
        if cand.exists():
            return cand
    return p.resolve()


def load_yaml(path: Path) -> Dict[str, Any]:
    p = Path(path).expanduser()
    if not p.exists():
        raise FileNotFoundError(f"Config not found: {p}")
    obj = yaml.safe_load(p.read_text(encoding="utf-8"))
    return obj if isinstance(obj, dict) else {}


def deep_get(d: Dict[str, Any], key: str, default: Any = None) -> Any:
    """Look up a dotted key ('optimizer.d0'); missing segments yield default."""
    cur: Any = d
    for part in key.split("."):
        if not isinstance(cur, dict) or part not in cur:
            return default
        cur = cur[part]
    return cur


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(base)
    for k, v in override.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = deep_merge(out[k], v)  # type: ignore[arg-type]
        else:
            out[k] = v
    return out


def as_plain_dict(x: Any) -> Any:
    """JSON-safe view of dataclasses, paths, tuples and numpy scalars."""
    if is_dataclass(x) and not isinstance(x, type):
        return {f.name: as_plain_dict(getattr(x, f.name)) for f in fields(x)}
    if isinstance(x, dict):
        return {str(k): as_plain_dict(v) for k, v in x.items()}
    if isinstance(x, (list, tuple)):
        return [as_plain_dict(v) for v in x]
    if isinstance(x, Path):
        return str(x)
    if isinstance(x, np.ndarray):
        return [as_plain_dict(v) for v in x.tolist()]
    if isinstance(x, np.generic):
        v = x.item()
        if isinstance(v, float) and not np.isfinite(v):
            return None
        return v
    if isinstance(x, float) and not np.isfinite(x):
        return None
    return x
