"""
Local cache of each user's active session id.

Mirrors the browser's single localStorage key: one entry per user under
SESSION_KEY, stored as a small JSON document. The store is always the
source of truth; a cached id is only a hint that the session service
verifies before use.
"""

import json
from pathlib import Path
from typing import Dict, Optional, Union

import structlog

log = structlog.get_logger(__name__)

SESSION_KEY = "carryOnSessionId"


class SessionCache:
    """JSON-file cache: {user_id: {"carryOnSessionId": session_id}}."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _load(self) -> Dict[str, Dict[str, str]]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text() or "{}")
        except json.JSONDecodeError:
            log.warning("session_cache_corrupt", path=str(self.path))
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: Dict[str, Dict[str, str]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, indent=2))
        tmp.replace(self.path)

    def get(self, user_id: str) -> Optional[str]:
        return self._load().get(user_id, {}).get(SESSION_KEY)

    def set(self, user_id: str, session_id: str) -> None:
        data = self._load()
        data[user_id] = {SESSION_KEY: session_id}
        self._save(data)

    def clear(self, user_id: str) -> None:
        data = self._load()
        if data.pop(user_id, None) is not None:
            self._save(data)
            log.debug("session_cache_cleared", user_id=user_id)
