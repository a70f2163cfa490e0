"""
File store infrastructure for ecosync.

Provides JSON file persistence with:
- Atomic writes (write to temp, then rename)
- Pretty formatting for human readability
- Automatic parent directory creation

The store never caches: the port registry is shared between processes,
so every read goes to disk. Cross-process exclusion is the caller's job
(see DirectoryLock).
"""

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict
import logging

logger = logging.getLogger(__name__)


class FileStore:
    """
    JSON object persistence with atomic writes.

    Example:
        store = FileStore(Path("build/temp/jekyll-ports.json"))
        store.set("a.in", {"port": 4123, "pid": 4242})
        data = store.get("a.in")
    """

    def __init__(self, path: Path, auto_create: bool = True):
        """
        Initialize FileStore.

        Args:
            path: Path to JSON file
            auto_create: Create file and parent directories if they don't exist
        """
        self.path = Path(path).expanduser().absolute()
        self._lock = threading.Lock()

        if auto_create:
            self._ensure_exists()

    def _ensure_exists(self) -> None:
        """Create file and parent directories if needed."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            self._write_atomic({})

    def _write_atomic(self, data: Dict[str, Any]) -> None:
        """Write data atomically using temp file and rename."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(
            dir=self.path.parent,
            prefix=f".{self.path.name}.",
            suffix=".tmp"
        )

        try:
            with os.fdopen(fd, 'w') as f:
                json.dump(data, f, indent=2, ensure_ascii=False, sort_keys=True)
                f.write('\n')

            os.replace(temp_path, self.path)

        except BaseException:
            # Clean up temp file on error, including interrupts
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise

    def read(self) -> Dict[str, Any]:
        """
        Read entire store.

        A missing or corrupt file reads as empty; corruption is logged.
        """
        with self._lock:
            if not self.path.exists():
                return {}
            try:
                with open(self.path, 'r') as f:
                    data = json.load(f)
            except (json.JSONDecodeError, OSError) as e:
                logger.warning(f"Error reading {self.path}: {e}")
                return {}
            if not isinstance(data, dict):
                logger.warning(f"Ignoring non-object content in {self.path}")
                return {}
            return data

    def write(self, data: Dict[str, Any]) -> None:
        """Write entire store."""
        with self._lock:
            self._write_atomic(data)

    def get(self, key: str, default: Any = None) -> Any:
        return self.read().get(key, default)

    def set(self, key: str, value: Any) -> None:
        data = self.read()
        data[key] = value
        self.write(data)

    def delete(self, key: str) -> bool:
        """Remove a key. Returns True if it was present."""
        data = self.read()
        if key not in data:
            return False
        del data[key]
        self.write(data)
        return True
