from __future__ import annotations

import stat
import tempfile
import unittest
from pathlib import Path

from lazyaws.providers.base import SsoSession
from lazyaws.providers.session_cache import CachedLogin, ClientRegistration, SessionCache, cache_key

URL = "https://example.awsapps.com/start"


class SessionCacheTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.directory = Path(self._tmp.name) / "sso"
        self.now = 1000.0
        self.cache = SessionCache(self.directory, clock=lambda: self.now)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _login(self, expires_at: float = 2000.0) -> CachedLogin:
        return CachedLogin(
            session=SsoSession(URL, "us-east-1", "token", expires_at),
            registration=ClientRegistration("cid", "secret", 5000.0),
        )

    def test_cache_key_is_stable_and_short(self) -> None:
        self.assertEqual(cache_key(URL), cache_key(f" {URL} "))
        self.assertEqual(len(cache_key(URL)), 16)
        self.assertEqual(self.cache.path_for(URL).name, f"session-{cache_key(URL)}.json")

    def test_saved_session_is_private_and_reloadable(self) -> None:
        path = self.cache.save(URL, self._login())

        self.assertEqual(stat.S_IMODE(path.stat().st_mode), 0o600)
        self.assertEqual(self.cache.load(URL), SsoSession(URL, "us-east-1", "token", 2000.0))
        self.assertEqual(self.cache.load_login(URL).registration, ClientRegistration("cid", "secret", 5000.0))

    def test_expired_session_is_not_returned_but_registration_is(self) -> None:
        self.cache.save(URL, self._login(expires_at=900.0))

        self.assertIsNone(self.cache.load(URL))
        self.assertTrue(self.cache.load_login(URL).registration.valid(self.now))

    def test_missing_and_corrupt_files_mean_no_session(self) -> None:
        self.assertEqual(self.cache.load_login(URL), CachedLogin())

        self.directory.mkdir(parents=True)
        self.cache.path_for(URL).write_text("not json", encoding="utf-8")
        with self.assertLogs("lazyaws.providers.session_cache", level="WARNING"):
            self.assertIsNone(self.cache.load(URL))

    def test_session_for_other_url_is_rejected(self) -> None:
        other = CachedLogin(session=SsoSession("https://other.awsapps.com/start", "us-east-1", "t", 2000.0))
        self.cache.save(URL, other)
        self.assertIsNone(self.cache.load(URL))


if __name__ == "__main__":
    unittest.main()
