# src/intunerun/core/cache.py
from __future__ import annotations
import json, os, pathlib, tempfile
from typing import Any, Optional


def read_json(path: pathlib.Path) -> Optional[dict[str, Any]]:
    if not path.exists(): return None
    return json.loads(path.read_text(encoding="utf-8"))


def write_json_atomic(path: pathlib.Path, data: dict) -> None:
    path = pathlib.Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=str(path.parent), prefix="._", suffix=".json")
    os.close(fd)
    try:
        pathlib.Path(tmp).write_text(json.dumps(data, indent=2, default=str), encoding="utf-8")
        os.replace(tmp, path)
    except BaseException:
        pathlib.Path(tmp).unlink(missing_ok=True)
        raise
