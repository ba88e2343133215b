import pytest
from spotipy.oauth2 import SpotifyOauthError

from cosmic_tunes.auth import SessionCacheHandler, SessionTokenStore, SpotipyTokenProvider
from cosmic_tunes.errors import NotAuthenticatedError, RefreshFailedError


class FakeAuthManager:
    def __init__(self, cache_handler, refreshed=None, error=None) -> None:
        self.cache_handler = cache_handler
        self.refreshed = refreshed
        self.error = error

    def validate_token(self, token_info):
        if self.error:
            raise self.error
        if self.refreshed is not None:
            self.cache_handler.save_token_to_cache(self.refreshed)
            return self.refreshed
        return token_info


@pytest.fixture
def store() -> SessionTokenStore:
    return SessionTokenStore()


def test_missing_token_is_not_authenticated(store: SessionTokenStore) -> None:
    provider = SpotipyTokenProvider(FakeAuthManager(SessionCacheHandler(store, "s1")))

    with pytest.raises(NotAuthenticatedError):
        provider.get_access_token()


def test_returns_cached_token(store: SessionTokenStore) -> None:
    store.put("s1", {"access_token": "tok"})
    provider = SpotipyTokenProvider(FakeAuthManager(SessionCacheHandler(store, "s1")))

    assert provider.get_access_token() == "tok"


def test_refreshed_token_is_saved_for_the_session(store: SessionTokenStore) -> None:
    store.put("s1", {"access_token": "old"})
    provider = SpotipyTokenProvider(FakeAuthManager(SessionCacheHandler(store, "s1"), refreshed={"access_token": "new"}))

    assert provider.get_access_token() == "new"
    assert store.get("s1") == {"access_token": "new"}


def test_rejected_refresh_raises(store: SessionTokenStore) -> None:
    store.put("s1", {"access_token": "old"})
    error = SpotifyOauthError("invalid_grant", error="invalid_grant")
    provider = SpotipyTokenProvider(FakeAuthManager(SessionCacheHandler(store, "s1"), error=error))

    with pytest.raises(RefreshFailedError):
        provider.get_access_token()


def test_sessions_are_isolated(store: SessionTokenStore) -> None:
    SessionCacheHandler(store, "s1").save_token_to_cache({"access_token": "one"})

    assert SessionCacheHandler(store, "s2").get_cached_token() is None
    store.discard("s1")
    assert store.get("s1") is None
    assert SessionTokenStore.new_session_id() != SessionTokenStore.new_session_id()
