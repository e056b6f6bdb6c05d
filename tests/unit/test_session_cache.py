"""Tests for the local session-id cache and the in-flight guard."""

import json

import pytest

from src.core.exceptions import SessionBusyError
from src.services.session_cache import SESSION_KEY, SessionCache
from src.services.session_guard import SessionGuard


class TestSessionCache:
    def test_get_set_clear(self, tmp_path):
        cache = SessionCache(tmp_path / "cache.json")

        assert cache.get("u1") is None
        cache.set("u1", "s1")
        cache.set("u2", "s2")
        assert cache.get("u1") == "s1"

        cache.clear("u1")

        assert cache.get("u1") is None
        assert cache.get("u2") == "s2"

    def test_uses_single_session_key_per_user(self, tmp_path):
        path = tmp_path / "cache.json"
        SessionCache(path).set("u1", "s1")

        assert json.loads(path.read_text()) == {"u1": {SESSION_KEY: "s1"}}
        assert SESSION_KEY == "carryOnSessionId"

    def test_corrupt_file_reads_as_empty(self, tmp_path):
        path = tmp_path / "cache.json"
        path.write_text("{not json")

        cache = SessionCache(path)

        assert cache.get("u1") is None
        cache.set("u1", "s1")
        assert cache.get("u1") == "s1"


class TestSessionGuard:
    async def test_second_holder_rejected(self):
        guard = SessionGuard()

        async with guard.hold("s1", "turn"):
            assert guard.is_busy("s1")
            with pytest.raises(SessionBusyError):
                async with guard.hold("s1", "reset"):
                    pass
            async with guard.hold("s2", "turn"):
                assert guard.is_busy("s2")

        assert not guard.is_busy("s1")

    async def test_released_on_error(self):
        guard = SessionGuard()

        with pytest.raises(RuntimeError):
            async with guard.hold("s1", "turn"):
                raise RuntimeError("boom")

        assert not guard.is_busy("s1")

    def test_bootstrap_lock_is_per_session(self):
        guard = SessionGuard()

        assert guard.bootstrap_lock("s1") is guard.bootstrap_lock("s1")
        assert guard.bootstrap_lock("s1") is not guard.bootstrap_lock("s2")

    def test_user_lock_is_per_user(self):
        guard = SessionGuard()

        assert guard.user_lock("u1") is guard.user_lock("u1")
        assert guard.user_lock("u1") is not guard.user_lock("u2")
        assert guard.user_lock("u1") is not guard.bootstrap_lock("u1")
