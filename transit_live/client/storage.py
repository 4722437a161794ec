"""
On-device key/value storage contract and reference implementations.
Values are strings, booleans or JSON-encodable objects. Read failures and corrupt
values read as absent; write failures are logged and never raised.
"""

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

logger = logging.getLogger(__name__)

# Storage keys
LAST_ITINERARY_KEY = "last_itinerary"
ACCESSIBILITY_MODE_KEY = "accessibility_mode"
HOME_STOP_KEY = "home_stop"
WORK_STOP_KEY = "work_stop"
CUSTOM_LOCATIONS_KEY = "custom_locations"
ROUTE_HISTORY_KEY = "route_history"
COMMUTE_DEPARTURES_KEY = "commute_departures"
COMMUTE_PATTERNS_KEY = "commute_patterns"

StorableValue = Union[str, int, float, bool, dict, list]


def encode_value(value: StorableValue) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


class KeyValueStore:
    """Async get/set/delete-by-key storage; subclasses implement the raw string methods"""

    async def _get_raw(self, key: str) -> Optional[str]:
        raise NotImplementedError

    async def _set_raw(self, key: str, value: str) -> None:
        raise NotImplementedError

    async def _delete_raw(self, key: str) -> None:
        raise NotImplementedError

    async def set(self, key: str, value: StorableValue) -> bool:
        try:
            await self._set_raw(key, encode_value(value))
            return True
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Error saving to storage for key {key}: {e}")
            return False

    async def get_string(self, key: str) -> Optional[str]:
        try:
            return await self._get_raw(key)
        except OSError as e:
            logger.error(f"Error getting string for key {key}: {e}")
            return None

    async def get_bool(self, key: str) -> Optional[bool]:
        value = await self.get_string(key)
        return None if value is None else value == "true"

    async def get_number(self, key: str) -> Optional[float]:
        value = await self.get_string(key)
        if value is None:
            return None
        try:
            return float(value)
        except ValueError:
            logger.error(f"Error parsing number for key {key}")
            return None

    async def get_object(self, key: str) -> Optional[Any]:
        value = await self.get_string(key)
        if not value:
            return None
        try:
            return json.loads(value)
        except ValueError as e:
            logger.error(f"Error parsing JSON for key {key}: {e}")
            return None

    async def delete(self, key: str) -> None:
        try:
            await self._delete_raw(key)
        except OSError as e:
            logger.error(f"Error deleting storage for key {key}: {e}")


class MemoryKeyValueStore(KeyValueStore):
    """In-process store, used in tests and ephemeral sessions"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    async def _get_raw(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def _set_raw(self, key: str, value: str) -> None:
        self._data[key] = value

    async def _delete_raw(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileKeyValueStore(KeyValueStore):
    """All keys in one JSON file, rewritten atomically on every change"""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._lock = asyncio.Lock()

    def _read_all(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except ValueError as e:
            logger.error(f"Storage file {self.path} is corrupt, treating as empty: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(data, f)
        os.replace(tmp_path, self.path)

    async def _get_raw(self, key: str) -> Optional[str]:
        loop = asyncio.get_running_loop()
        async with self._lock:
            value = (await loop.run_in_executor(None, self._read_all)).get(key)
        return value if value is None or isinstance(value, str) else json.dumps(value)

    async def _set_raw(self, key: str, value: str) -> None:
        loop = asyncio.get_running_loop()
        async with self._lock:
            data = await loop.run_in_executor(None, self._read_all)
            data[key] = value
            await loop.run_in_executor(None, self._write_all, data)

    async def _delete_raw(self, key: str) -> None:
        loop = asyncio.get_running_loop()
        async with self._lock:
            data = await loop.run_in_executor(None, self._read_all)
            if key in data:
                del data[key]
                await loop.run_in_executor(None, self._write_all, data)
