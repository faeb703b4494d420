"""Concrete implementations of the SessionStore interface.

``InMemorySessionStore`` keeps values for the lifetime of the process (tests,
embedding). ``FileSessionStore`` persists them as a small JSON document so a
login survives between CLI invocations, the way a browser keeps local
storage between page loads.
"""

import json
import logging
import os
from pathlib import Path
from typing import Dict, Optional

from dashlink.domain.interfaces.session_store import SessionStore

logger = logging.getLogger(__name__)

DEFAULT_SESSION_FILE = Path.home() / ".dashlink" / "session.json"


class InMemorySessionStore(SessionStore):
    """Dict-backed store."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._values: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def remove(self, key: str) -> None:
        self._values.pop(key, None)


class FileSessionStore(SessionStore):
    """JSON-file-backed store. The whole document is rewritten on change."""

    def __init__(self, path: Path = DEFAULT_SESSION_FILE):
        self.path = Path(path)

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to read session file {self.path}: {e}. Treating as empty.")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Session file {self.path} did not contain an object. Treating as empty.")
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _save(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.path.with_suffix(".tmp")
        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(data, f)
        os.replace(str(temp_path), str(self.path))

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._save(data)
        logger.debug(f"Stored session key '{key}' in {self.path}")

    def remove(self, key: str) -> None:
        data = self._load()
        if key in data:
            del data[key]
            self._save(data)
            logger.debug(f"Removed session key '{key}' from {self.path}")
