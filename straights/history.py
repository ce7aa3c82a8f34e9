import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

from .config import HistorySettings
from .encoder import BitmaskEncoder
from .envelope import dump_state, restore_state_async
from .grid import Grid


logger = logging.getLogger(__name__)


class KeyValueStorage(Protocol):
    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...

    def keys(self, predicate: Callable[[str], bool]) -> list[str]:
        ...


class MemoryStorage:
    def __init__(self, items: Optional[dict[str, str]] = None) -> None:
        self._items: dict[str, str] = dict(items or {})

    def get(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self, predicate: Callable[[str], bool]) -> list[str]:
        return [key for key in self._items if predicate(key)]


@dataclass(frozen=True)
class SavedGame:
    key: str
    timestamp: int
    data: Any

    @property
    def history_data(self) -> dict[str, Any]:
        data = self.data.get("data") if isinstance(self.data, dict) else None
        return data if isinstance(data, dict) else {}


class GameHistory:
    def __init__(
        self,
        storage: KeyValueStorage,
        settings: Optional[HistorySettings] = None,
        encoder: Optional[BitmaskEncoder] = None,
    ) -> None:
        self.storage = storage
        self.settings = settings or HistorySettings()
        self.encoder = encoder or BitmaskEncoder()

    @property
    def prefix(self) -> str:
        return self.settings.storage_prefix

    def save_game_state(self, key: str, grid: Grid, encoder: Optional[BitmaskEncoder] = None) -> None:
        entry = {"timestamp": int(time.time() * 1000), "data": dump_state(grid, encoder or self.encoder)}
        self.storage.set(self.prefix + key, json.dumps(entry))
        self.ensure_storage_limit()

    async def restore_game_state_async(self, key: str, grid: Grid, encoder: Optional[BitmaskEncoder] = None) -> bool:
        saved = self._load(self.prefix + key)
        if saved is None:
            return False
        restored = await restore_state_async(grid, saved["data"], encoder or self.encoder)
        # Older entries may not record creation time; the save time bounds it.
        if restored and grid.created > saved["timestamp"]:
            grid.created = saved["timestamp"]
        return restored

    def get_latest_game_key(self) -> Optional[str]:
        latest_key: Optional[str] = None
        latest_timestamp = 0
        for saved in self.get_all_saved_games():
            if saved.timestamp > latest_timestamp:
                latest_timestamp = saved.timestamp
                latest_key = saved.key
        return latest_key

    def get_all_saved_games(self) -> list[SavedGame]:
        result = []
        for prefixed_key in self._prefixed_keys():
            saved = self._load(prefixed_key)
            if saved is not None:
                result.append(
                    SavedGame(key=prefixed_key[len(self.prefix) :], timestamp=saved["timestamp"], data=saved["data"])
                )
        return result

    def ensure_storage_limit(self) -> None:
        prefixed_keys = self._prefixed_keys()
        if len(prefixed_keys) <= self.settings.max_stored_games:
            return
        logger.info("Cropping game history")
        keys_by_age: list[tuple[int, str]] = []
        for prefixed_key in prefixed_keys:
            saved = self._load(prefixed_key)
            if saved is None:
                logger.debug("Removing corrupt history entry %s", prefixed_key)
                self.storage.remove(prefixed_key)
            else:
                keys_by_age.append((saved["timestamp"], prefixed_key))
        keys_by_age.sort()
        for _, old_key in keys_by_age[: len(keys_by_age) - self.settings.max_stored_games]:
            logger.debug("Removing old history entry %s", old_key)
            self.storage.remove(old_key)

    def _prefixed_keys(self) -> list[str]:
        return self.storage.keys(lambda key: key.startswith(self.prefix))

    def _load(self, prefixed_key: str) -> Optional[dict[str, Any]]:
        text = self.storage.get(prefixed_key)
        if not text:
            return None
        try:
            entry = json.loads(text)
        except json.JSONDecodeError as exc:
            logger.warning("Error loading game state from storage for key %s: %s", prefixed_key, exc)
            return None
        if not isinstance(entry, dict) or not entry.get("data"):
            return None
        timestamp = entry.get("timestamp")
        if not isinstance(timestamp, int) or isinstance(timestamp, bool) or timestamp <= 0:
            return None
        return entry
