import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest
import requests

from client import ApiClient, ApiError, ClientSession, RefreshCoordinator

BASE = "http://api.test/api/v1"


class FakeResponse:
    def __init__(self, status_code, body):
        self.status_code = status_code
        self._body = body

    def json(self):
        return self._body


def _expired():
    return FakeResponse(401, {"result": "error", "error": {"code": "TOKEN_EXPIRED", "message": "만료"}})


class FakeSession:
    """
    Stands in for requests.Session.

    Requests carrying the stale token are held at a barrier so every caller
    sees its 401 at the same moment. The refresh endpoint is slow enough for
    all of them to join the same refresh.
    """

    def __init__(self, callers=1, refresh_ok=True, always_expired=False, data_response=None, on_expired=None):
        self.barrier = threading.Barrier(callers, timeout=5)
        self.refresh_ok = refresh_ok
        self.always_expired = always_expired
        self.data_response = data_response
        self.on_expired = on_expired
        self.calls = []
        self._lock = threading.Lock()

    def refresh_calls(self):
        return [c for c in self.calls if c[1].endswith("/auth/refresh")]

    def request(self, method, url, json=None, params=None, headers=None, timeout=None):
        with self._lock:
            self.calls.append((method, url, dict(headers or {})))

        if url.endswith("/auth/refresh"):
            time.sleep(0.2)
            if not self.refresh_ok:
                return FakeResponse(401, {"result": "error", "error": {"code": "UNAUTHORIZED", "message": "세션 없음"}})
            return FakeResponse(
                201,
                {"result": "success", "data": {"accessToken": "new", "id": "user-1", "email": "a@x.com"}},
            )

        if self.data_response is not None:
            return self.data_response

        token = (headers or {}).get("Authorization")
        if token == "Bearer old":
            self.barrier.wait()
            if self.on_expired is not None:
                self.on_expired()
            return _expired()
        if self.always_expired:
            return _expired()
        return FakeResponse(200, {"result": "success", "data": {"seen": token}})


def make_client(fake):
    client = ApiClient(BASE, session=fake)
    client.tokens.set(ClientSession("old", "user-1", "a@x.com"))
    return client


def run_concurrently(client, n):
    with ThreadPoolExecutor(max_workers=n) as pool:
        futures = [pool.submit(client.request, "GET", "/users/me") for _ in range(n)]
    return futures


class TestApiClientRefresh:
    def test_concurrent_expiry_triggers_one_refresh(self):
        fake = FakeSession(callers=5)
        client = make_client(fake)

        results = [f.result() for f in run_concurrently(client, 5)]

        assert len(fake.refresh_calls()) == 1
        assert results == [{"seen": "Bearer new"}] * 5
        assert client.tokens.access_token == "new"
        assert not client.refresher.in_flight

    def test_refresh_finished_while_request_was_on_the_wire(self):
        fake = FakeSession()
        client = make_client(fake)
        # another caller completes a whole refresh before this request's 401 arrives
        fake.on_expired = client.refresh_access_token

        assert client.request("GET", "/users/me") == {"seen": "Bearer new"}
        assert len(fake.refresh_calls()) == 1

    def test_refresh_request_is_not_authenticated(self):
        fake = FakeSession()
        client = make_client(fake)
        client.request("GET", "/users/me")
        _, _, headers = fake.refresh_calls()[0]
        assert "Authorization" not in headers

    def test_failed_refresh_rejects_every_waiter_with_original_error(self):
        fake = FakeSession(callers=5, refresh_ok=False)
        client = make_client(fake)

        futures = run_concurrently(client, 5)

        assert len(fake.refresh_calls()) == 1
        for future in futures:
            error = future.exception()
            assert isinstance(error, ApiError)
            assert error.code == "TOKEN_EXPIRED"
            assert isinstance(error.__cause__, ApiError)
            assert error.__cause__.code == "UNAUTHORIZED"
        assert client.tokens.get() is None
        assert not client.refresher.in_flight

    def test_retried_request_is_not_refreshed_again(self):
        fake = FakeSession(always_expired=True)
        client = make_client(fake)

        with pytest.raises(ApiError) as exc:
            client.request("GET", "/users/me")

        assert exc.value.is_token_expired
        assert len(fake.refresh_calls()) == 1
        data_calls = [c for c in fake.calls if c[1].endswith("/users/me")]
        assert len(data_calls) == 2

    def test_skip_token_refresh_flag(self):
        fake = FakeSession()
        client = make_client(fake)
        with pytest.raises(ApiError):
            client.request("GET", "/users/me", skip_token_refresh=True)
        assert fake.refresh_calls() == []

    @pytest.mark.parametrize(
        "response",
        [
            FakeResponse(401, {"result": "error", "error": {"code": "UNAUTHORIZED", "message": "no"}}),
            FakeResponse(403, {"result": "error", "error": {"code": "FORBIDDEN", "message": "no"}}),
            FakeResponse(500, {"result": "error", "error": {"code": "INTERNAL_ERROR", "message": "no"}}),
        ],
    )
    def test_other_errors_bypass_refresh(self, response):
        fake = FakeSession(data_response=response)
        client = make_client(fake)
        with pytest.raises(ApiError) as exc:
            client.request("GET", "/users/me")
        assert exc.value.status == response.status_code
        assert fake.refresh_calls() == []
        assert client.tokens.access_token == "old"

    def test_network_failure(self):
        class Broken:
            def request(self, *args, **kwargs):
                raise requests.ConnectionError("down")

        client = ApiClient(BASE, session=Broken())
        with pytest.raises(ApiError) as exc:
            client.request("GET", "/health", auth=False)
        assert exc.value.code == "NETWORK_ERROR"
        assert exc.value.status is None

    def test_sign_out_clears_tokens_even_on_error(self):
        fake = FakeSession(data_response=FakeResponse(500, None))
        client = make_client(fake)
        with pytest.raises(ApiError):
            client.sign_out()
        assert client.tokens.get() is None


class TestRefreshCoordinator:
    def test_waiters_share_one_result(self):
        started = threading.Event()
        release = threading.Event()
        calls = []

        def slow_refresh():
            calls.append(1)
            started.set()
            release.wait(5)
            return "token-2"

        coordinator = RefreshCoordinator(slow_refresh)
        with ThreadPoolExecutor(max_workers=4) as pool:
            owner = pool.submit(coordinator.refresh)
            started.wait(5)
            waiters = [pool.submit(coordinator.refresh) for _ in range(3)]
            time.sleep(0.05)
            assert coordinator.in_flight
            release.set()

        assert owner.result() == "token-2"
        assert [w.result() for w in waiters] == ["token-2"] * 3
        assert len(calls) == 1

    def test_replaced_token_skips_refresh(self):
        state = {"token": "token-1"}
        calls = []

        def do_refresh():
            calls.append(1)
            state["token"] = f"token-{len(calls) + 1}"
            return state["token"]

        coordinator = RefreshCoordinator(do_refresh, current_fn=lambda: state["token"])
        assert coordinator.refresh(stale="token-1") == "token-2"
        # a caller still holding token-1 arrives after the refresh settled
        assert coordinator.refresh(stale="token-1") == "token-2"
        assert len(calls) == 1
        assert coordinator.refresh(stale="token-2") == "token-3"
        assert len(calls) == 2

    def test_cleared_store_does_not_count_as_replaced(self):
        calls = []

        def do_refresh():
            calls.append(1)
            return "token-2"

        coordinator = RefreshCoordinator(do_refresh, current_fn=lambda: None)
        assert coordinator.refresh(stale="token-1") == "token-2"
        assert len(calls) == 1

    def test_cleared_after_success(self):
        results = iter(["first", "second"])
        coordinator = RefreshCoordinator(lambda: next(results))
        assert coordinator.refresh() == "first"
        assert not coordinator.in_flight
        assert coordinator.refresh() == "second"

    def test_cleared_after_failure(self):
        attempts = []

        def flaky():
            attempts.append(1)
            if len(attempts) == 1:
                raise ValueError("refresh rejected")
            return "ok"

        coordinator = RefreshCoordinator(flaky)
        with pytest.raises(ValueError):
            coordinator.refresh()
        assert not coordinator.in_flight
        assert coordinator.refresh() == "ok"

    def test_waiters_see_the_same_failure(self):
        started = threading.Event()
        release = threading.Event()

        def failing():
            started.set()
            release.wait(5)
            raise ValueError("refresh rejected")

        coordinator = RefreshCoordinator(failing)
        with ThreadPoolExecutor(max_workers=3) as pool:
            owner = pool.submit(coordinator.refresh)
            started.wait(5)
            waiters = [pool.submit(coordinator.refresh) for _ in range(2)]
            time.sleep(0.05)
            release.set()

        for future in [owner, *waiters]:
            assert isinstance(future.exception(), ValueError)
