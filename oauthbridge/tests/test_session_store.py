import os
import time

import pytest
from flask import Response

pytestmark = pytest.mark.unit

from oauthbridge.core.auth.errors import StoreError
from oauthbridge.core.session.codec import encode
from oauthbridge.core.session.store import (
    CookieSessionStore,
    FilesystemSessionStore,
    SessionOptions,
)

NAME = "_test_session"
SECRET = "store-secret"


def _saved(store, make_request, values, cookie=None):
    request = make_request(cookie=cookie)
    response = Response()
    session = store.new(request, NAME)
    session.values.update(values)
    store.save(request, response, session)
    return session, response


class TestCookieSessionStore:
    def test_values_survive_round_trip(self, make_request, session_cookie):
        store = CookieSessionStore(SECRET)
        payload = encode('{"auth_url": "https://github.example.com/authorize"}')
        _, response = _saved(store, make_request, {"github": payload})

        cookie = session_cookie(response, NAME)
        assert cookie is not None

        loaded = store.get(make_request(cookie=cookie), NAME)
        assert loaded.is_new is False
        assert loaded.values == {"github": payload}
        assert isinstance(loaded.values["github"], bytes)

    def test_missing_cookie_gives_transient_empty_session(self, make_request):
        store = CookieSessionStore(SECRET)
        session = store.get(make_request(), NAME)
        assert session.is_new is True
        assert session.values == {}

    def test_get_is_cached_per_request_and_new_replaces_it(self, make_request):
        store = CookieSessionStore(SECRET)
        request = make_request()
        first = store.get(request, NAME)
        assert store.get(request, NAME) is first

        fresh = store.new(request, NAME)
        assert fresh is not first
        assert store.get(request, NAME) is fresh

    def test_tampered_cookie_is_discarded(self, make_request, session_cookie):
        store = CookieSessionStore(SECRET)
        _, response = _saved(store, make_request, {"github": b"x"})
        cookie = session_cookie(response, NAME)

        session = store.get(make_request(cookie=cookie[:-3] + "abc"), NAME)
        assert session.is_new is True
        assert session.values == {}

    def test_cookie_signed_with_other_key_is_discarded(self, make_request, session_cookie):
        _, response = _saved(CookieSessionStore("other-secret"), make_request, {"github": b"x"})
        session = CookieSessionStore(SECRET).get(make_request(cookie=session_cookie(response, NAME)), NAME)
        assert session.values == {}

    def test_invalidate_expires_cookie_and_clears_values(self, make_request, session_cookie):
        store = CookieSessionStore(SECRET)
        _, saved = _saved(store, make_request, {"github": b"x", "google": b"y"})
        request = make_request(cookie=session_cookie(saved, NAME))
        session = store.get(request, NAME)

        response = Response()
        store.invalidate(request, response, session)

        assert session.values == {}
        assert session.options.max_age == -1
        header = response.headers.getlist("Set-Cookie")[0]
        assert header.startswith(f"{NAME}=;")
        assert "Max-Age=0" in header
        assert store.get(make_request(cookie=session_cookie(response, NAME)), NAME).values == {}

    def test_invalidation_does_not_touch_store_defaults(self, make_request):
        store = CookieSessionStore(SECRET, SessionOptions(max_age=600))
        request = make_request()
        store.invalidate(request, Response(), store.get(request, NAME))
        assert store.options.max_age == 600

    def test_saving_twice_keeps_one_cookie_header(self, make_request):
        store = CookieSessionStore(SECRET)
        request = make_request()
        response = Response()
        response.set_cookie("unrelated", "1")
        session = store.new(request, NAME)
        session.values["github"] = b"first"
        store.save(request, response, session)
        session.values["github"] = b"second"
        store.save(request, response, session)

        headers = response.headers.getlist("Set-Cookie")
        assert len([h for h in headers if h.startswith(f"{NAME}=")]) == 1
        assert any(h.startswith("unrelated=") for h in headers)

    def test_cookie_attributes_follow_options(self, make_request):
        options = SessionOptions(path="/auth", domain="example.com", max_age=300, secure=True)
        store = CookieSessionStore(SECRET, options)
        _, response = _saved(store, make_request, {"github": b"x"})
        header = response.headers.getlist("Set-Cookie")[0]
        assert "Path=/auth" in header
        assert "Domain=example.com" in header
        assert "Max-Age=300" in header
        assert "Secure" in header
        assert "HttpOnly" in header
        assert "SameSite=Lax" in header

    def test_oversized_record_is_rejected(self, make_request):
        store = CookieSessionStore(SECRET)
        with pytest.raises(StoreError):
            _saved(store, make_request, {"github": os.urandom(6000)})

    def test_secret_is_required(self):
        with pytest.raises(ValueError):
            CookieSessionStore("")


class TestFilesystemSessionStore:
    def test_values_live_on_disk(self, tmp_path, make_request, session_cookie):
        store = FilesystemSessionStore(tmp_path, SECRET)
        payload = os.urandom(6000)
        session, response = _saved(store, make_request, {"github": payload})

        assert session.id
        assert (tmp_path / f"session_{session.id}").is_file()
        cookie = session_cookie(response, NAME)
        assert len(cookie) < 200

        loaded = store.get(make_request(cookie=cookie), NAME)
        assert loaded.id == session.id
        assert loaded.values == {"github": payload}
        assert loaded.is_new is False

    def test_resave_keeps_session_id(self, tmp_path, make_request, session_cookie):
        store = FilesystemSessionStore(tmp_path, SECRET)
        first, response = _saved(store, make_request, {"github": b"x"})
        second, _ = _saved(store, make_request, {"google": b"y"}, cookie=session_cookie(response, NAME))
        assert second.id == first.id
        assert second.values == {"github": b"x", "google": b"y"}
        assert len(list(tmp_path.glob("session_*"))) == 1

    def test_invalidate_removes_file(self, tmp_path, make_request, session_cookie):
        store = FilesystemSessionStore(tmp_path, SECRET)
        session, saved = _saved(store, make_request, {"github": b"x"})
        request = make_request(cookie=session_cookie(saved, NAME))

        response = Response()
        store.invalidate(request, response, store.get(request, NAME))

        assert not (tmp_path / f"session_{session.id}").exists()
        assert "Max-Age=0" in response.headers.getlist("Set-Cookie")[0]

    def test_missing_file_gives_empty_session(self, tmp_path, make_request, session_cookie):
        store = FilesystemSessionStore(tmp_path, SECRET)
        session, response = _saved(store, make_request, {"github": b"x"})
        (tmp_path / f"session_{session.id}").unlink()

        loaded = store.get(make_request(cookie=session_cookie(response, NAME)), NAME)
        assert loaded.values == {}
        assert loaded.is_new is True

    def test_no_temp_files_left_behind(self, tmp_path, make_request):
        store = FilesystemSessionStore(tmp_path, SECRET)
        _saved(store, make_request, {"github": b"x"})
        assert [p.name for p in tmp_path.iterdir() if p.name.startswith(".tmp_")] == []

    def test_purge_expired_removes_stale_files(self, tmp_path, make_request):
        store = FilesystemSessionStore(tmp_path, SECRET, SessionOptions(max_age=60))
        stale, _ = _saved(store, make_request, {"github": b"old"})
        fresh, _ = _saved(store, make_request, {"github": b"new"})
        old = time.time() - 3600
        os.utime(tmp_path / f"session_{stale.id}", (old, old))

        assert store.purge_expired() == 1
        assert not (tmp_path / f"session_{stale.id}").exists()
        assert (tmp_path / f"session_{fresh.id}").exists()

    def test_purge_without_max_age_is_a_no_op(self, tmp_path, make_request):
        store = FilesystemSessionStore(tmp_path, SECRET)
        _saved(store, make_request, {"github": b"x"})
        assert store.purge_expired() == 0

    def test_unwritable_directory_raises_store_error(self, tmp_path, make_request):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("occupied")
        store = FilesystemSessionStore(blocker, SECRET)
        with pytest.raises(StoreError):
            _saved(store, make_request, {"github": b"x"})
