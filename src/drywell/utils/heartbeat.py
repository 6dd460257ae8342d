# src/drywell/utils/heartbeat.py
from __future__ import annotations

import json
import os
import time
from pathlib import Path
from typing import Any, Dict

from drywell.utils.config import as_plain_dict


def write_json_atomic(path: Path, payload: Dict[str, Any], *, sort_keys: bool = False) -> None:
    """
    Atomic JSON write (tmp + replace) so tailing readers never see partial JSON.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(as_plain_dict(payload), indent=2, sort_keys=sort_keys), encoding="utf-8")
    os.replace(tmp, path)


def write_heartbeat(path: Path, payload: Dict[str, Any]) -> None:
    """
    Optimizer progress beacon. Adds ts/pid automatically.
    """
    obj = dict(payload)
    obj["ts"] = time.time()
    obj["pid"] = os.getpid()
    write_json_atomic(path, obj, sort_keys=True)
