"""Persist small key/value documents as JSON (session secrets and plain settings)."""
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class JsonStore:
    """Key/value store backed by one JSON file.

    Writes go to a temp file and are moved into place, so a crash never leaves a
    half-written file. With secret=True the file is created readable by the owner only.
    """

    def __init__(self, path: Path, *, secret: bool = False) -> None:
        self._path = Path(path)
        self._secret = secret

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text())
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Store %s unreadable, starting empty: %s", self._path.name, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: Dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_name(self._path.name + ".tmp")
        tmp.write_text(json.dumps(data, indent=2))
        if self._secret:
            os.chmod(tmp, 0o600)
        os.replace(tmp, self._path)

    def get(self, key: str, default: Optional[Any] = None) -> Any:
        return self._load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.update({key: value})

    def update(self, values: Dict[str, Any]) -> None:
        """Write several keys in one file replace."""
        data = self._load()
        for key, value in values.items():
            if value is None:
                data.pop(key, None)
            else:
                data[key] = value
        self._save(data)

    def delete(self, *keys: str) -> None:
        data = self._load()
        if not any(k in data for k in keys):
            return
        for key in keys:
            data.pop(key, None)
        self._save(data)

    def clear(self) -> None:
        try:
            self._path.unlink()
        except FileNotFoundError:
            pass
