"""File-based persistence helpers for route snapshots."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from ..config import settings


class FileStorage:
    """Thin wrapper around the data root for storing JSON route snapshots."""

    def __init__(self, root: Path | None = None) -> None:
        self.root = (root or settings.data_root).resolve()
        self.output_root = self.root / "outputs"
        self.output_root.mkdir(parents=True, exist_ok=True)

    def snapshot_path(self, kind: str, identifier: str) -> Path:
        return self.output_root / kind / f"{identifier}.json"

    def write_json(self, path: Path, data: Any, *, indent: int = 2) -> None:
        """Write ``data`` next to ``path`` and rename it into place."""
        path.parent.mkdir(parents=True, exist_ok=True)
        staging = path.with_suffix(path.suffix + ".tmp")
        with staging.open("w", encoding="utf-8") as handle:
            json.dump(data, handle, ensure_ascii=False, indent=indent, default=str)
        staging.replace(path)

    def read_json(self, path: Path) -> Any:
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)
