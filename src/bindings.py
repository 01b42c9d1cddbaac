import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Union

from config import BINDINGS_FILE
from param_package import ParamPackage

logger = logging.getLogger(__name__)


class BindingStore:
    """
    Persists named ParamPackages (device/input bindings) in a JSON file.

    Each binding is kept as its serialized single-line form, so the file
    stays readable and every entry decodes independently of the others.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path) if path else BINDINGS_FILE
        self.last_updated: Optional[str] = None

    def _read_raw(self) -> Dict[str, str]:
        """Read the stored serialized strings; unreadable files count as empty."""
        if not self.path.exists():
            return {}

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                store = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("could not read bindings from %s: %s", self.path, e)
            return {}

        if not isinstance(store, dict) or not isinstance(store.get("bindings"), dict):
            logger.warning("%s is not a bindings file, ignoring it", self.path)
            return {}

        self.last_updated = store.get("timestamp")
        raw = {}
        for name, serialized in store["bindings"].items():
            if not isinstance(serialized, str):
                logger.error("binding %s is not a serialized string, skipping", name)
                continue
            raw[name] = serialized
        return raw

    def _write_raw(self, raw: Dict[str, str]) -> None:
        store = {
            "timestamp": datetime.now().isoformat(),
            "bindings": raw,
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(store, f, indent=2, ensure_ascii=False)
        self.last_updated = store["timestamp"]

    def load(self) -> Dict[str, ParamPackage]:
        """Load every binding, keyed by name."""
        return {name: ParamPackage(serialized) for name, serialized in self._read_raw().items()}

    def save(self, bindings: Dict[str, ParamPackage]) -> None:
        """Replace the stored bindings with ``bindings``."""
        self._write_raw({name: package.serialize() for name, package in bindings.items()})

    def names(self) -> List[str]:
        return sorted(self._read_raw())

    def get(self, name: str) -> Optional[ParamPackage]:
        serialized = self._read_raw().get(name)
        if serialized is None:
            return None
        return ParamPackage(serialized)

    def put(self, name: str, package: ParamPackage) -> None:
        raw = self._read_raw()
        raw[name] = package.serialize()
        self._write_raw(raw)

    def remove(self, name: str) -> bool:
        """Drop a binding. Returns False if it was not stored."""
        raw = self._read_raw()
        if name not in raw:
            return False
        del raw[name]
        self._write_raw(raw)
        return True
