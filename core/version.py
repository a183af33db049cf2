# -*- coding: utf-8 -*-
"""Version info read from conf/version.json.

`project` tracks releases of the service, `schema` tracks the layout of
the stored garden document (bump it when GardenState.to_dict changes).
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict

VERSION_FILE = Path(__file__).resolve().parents[1] / "conf" / "version.json"


@dataclass(frozen=True)
class VersionInfo:
    project: str = "0.0.0"
    schema: str = "1"

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


def _text(raw: Any, fallback: str) -> str:
    if isinstance(raw, (str, int)) and str(raw).strip():
        return str(raw).strip()
    return fallback


@lru_cache(maxsize=1)
def version_info() -> VersionInfo:
    try:
        raw = json.loads(VERSION_FILE.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return VersionInfo()
    if not isinstance(raw, dict):
        return VersionInfo()
    base = VersionInfo()
    return VersionInfo(
        project=_text(raw.get("project_version"), base.project),
        schema=_text(raw.get("schema_version"), base.schema),
    )


def project_version() -> str:
    return version_info().project
