"""Tests for the waitlist endpoint and the rate limiters behind it."""

import pytest
from fastapi.testclient import TestClient
from starlette.requests import Request

from main import app
from src.growwise.api import waitlist
from src.growwise.api.rate_limit import MemoryRateLimiter, RedisRateLimiter, get_rate_limiter
from src.growwise.config import settings

WAITLIST_URL = "/functions/v1/waitlist-submit"


def signup(email: str = "jamie@example.com", **overrides) -> dict:
    body = {"firstName": "Jamie ", "lastName": " Lee", "birthday": "1990-01-01", "email": email}
    body.update(overrides)
    return body


@pytest.fixture
def client(monkeypatch):
    """Test client with a fresh limiter and CAPTCHA disabled."""
    monkeypatch.setattr(settings, "turnstile_secret_key", None)
    limiter = MemoryRateLimiter()
    app.dependency_overrides[get_rate_limiter] = lambda: limiter
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


class TestWaitlistSubmit:
    """Tests for waitlist signups."""

    def test_success(self, client):
        response = client.post(WAITLIST_URL, json=signup())
        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "You're on the waitlist!"}

    def test_missing_fields(self, client):
        """Test every field is required."""
        response = client.post(WAITLIST_URL, json=signup(birthday=""))
        assert response.status_code == 400
        assert response.json()["error"] == "All fields are required"

    def test_invalid_email(self, client):
        response = client.post(WAITLIST_URL, json=signup(email="not-an-email"))
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid email format"

    def test_duplicate_email(self, client):
        """Test emails are matched case-insensitively."""
        client.post(WAITLIST_URL, json=signup())
        response = client.post(WAITLIST_URL, json=signup(email="Jamie@Example.com"))
        assert response.status_code == 409
        assert response.json()["error"] == waitlist.DUPLICATE_EMAIL_MESSAGE

    def test_ip_rate_limit(self, client):
        """Test the sixth signup from one address within the hour is refused."""
        headers = {"X-Forwarded-For": "203.0.113.7, 10.0.0.1"}
        for i in range(5):
            response = client.post(WAITLIST_URL, json=signup(f"person{i}@example.com"), headers=headers)
            assert response.status_code == 200

        response = client.post(WAITLIST_URL, json=signup("person5@example.com"), headers=headers)

        assert response.status_code == 429
        assert response.json()["error"] == "Too many requests. Please try again later."
        assert int(response.headers["Retry-After"]) > 0
        assert response.json()["retryAfter"] == int(response.headers["Retry-After"])

    def test_email_rate_limit(self, client):
        """Test one email address is limited across client addresses."""
        for i in range(3):
            client.post(WAITLIST_URL, json=signup(), headers={"X-Real-IP": f"198.51.100.{i}"})

        response = client.post(WAITLIST_URL, json=signup(), headers={"X-Real-IP": "198.51.100.9"})

        assert response.status_code == 429
        assert response.json()["error"] == "Too many requests for this email. Please try again later."


class TestCaptcha:
    """Tests for Turnstile verification."""

    @pytest.fixture(autouse=True)
    def captcha_enabled(self, client, monkeypatch):
        monkeypatch.setattr(settings, "turnstile_secret_key", "secret")

    def test_token_required(self, client):
        response = client.post(WAITLIST_URL, json=signup())
        assert response.status_code == 400
        assert response.json()["error"] == "CAPTCHA verification required"

    def test_failed_verification(self, client, monkeypatch):
        async def reject(token, remote_ip):
            return False

        monkeypatch.setattr(waitlist, "verify_turnstile_token", reject)

        response = client.post(WAITLIST_URL, json=signup(turnstileToken="bad"))

        assert response.status_code == 400
        assert response.json()["error"] == "CAPTCHA verification failed. Please try again."

    def test_passed_verification(self, client, monkeypatch):
        seen = {}

        async def accept(token, remote_ip):
            seen.update(token=token, remote_ip=remote_ip)
            return True

        monkeypatch.setattr(waitlist, "verify_turnstile_token", accept)

        response = client.post(WAITLIST_URL, json=signup(turnstileToken="good"), headers={"X-Real-IP": "192.0.2.1"})

        assert response.status_code == 200
        assert seen == {"token": "good", "remote_ip": "192.0.2.1"}

    def test_bypass_token(self, client):
        """Test the local development token skips verification."""
        response = client.post(WAITLIST_URL, json=signup(turnstileToken=waitlist.BYPASS_TOKEN))
        assert response.status_code == 200


class TestClientIp:
    """Tests for resolving the caller's address."""

    @staticmethod
    def _request(headers: dict) -> Request:
        raw = [(key.lower().encode(), value.encode()) for key, value in headers.items()]
        return Request({"type": "http", "headers": raw})

    def test_forwarded_for_first_entry(self):
        assert waitlist.client_ip(self._request({"X-Forwarded-For": "1.2.3.4, 5.6.7.8"})) == "1.2.3.4"

    def test_real_ip(self):
        assert waitlist.client_ip(self._request({"X-Real-IP": "9.9.9.9"})) == "9.9.9.9"

    def test_unknown(self):
        assert waitlist.client_ip(self._request({})) == "unknown"


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


class FakeRedis:
    """Just enough of redis.asyncio.Redis for the limiter."""

    def __init__(self):
        self.counts: dict[str, int] = {}
        self.ttls: dict[str, int] = {}

    async def incr(self, key):
        self.counts[key] = self.counts.get(key, 0) + 1
        return self.counts[key]

    async def expire(self, key, seconds):
        self.ttls[key] = seconds
        return True

    async def ttl(self, key):
        return self.ttls.get(key, -1)


class TestMemoryRateLimiter:
    """Tests for the in-process limiter."""

    @pytest.mark.asyncio
    async def test_blocks_over_limit(self):
        clock = FakeClock()
        limiter = MemoryRateLimiter(clock=clock)

        assert await limiter.hit("k", 2, 60) == (True, 0)
        assert await limiter.hit("k", 2, 60) == (True, 0)
        clock.now += 15
        assert await limiter.hit("k", 2, 60) == (False, 45)

    @pytest.mark.asyncio
    async def test_window_resets(self):
        clock = FakeClock()
        limiter = MemoryRateLimiter(clock=clock)
        await limiter.hit("k", 1, 60)

        clock.now += 60

        assert await limiter.hit("k", 1, 60) == (True, 0)

    @pytest.mark.asyncio
    async def test_keys_are_independent(self):
        limiter = MemoryRateLimiter(clock=FakeClock())
        await limiter.hit("a", 1, 60)
        assert await limiter.hit("b", 1, 60) == (True, 0)


class TestRedisRateLimiter:
    """Tests for the shared limiter."""

    @pytest.mark.asyncio
    async def test_sets_expiry_on_first_hit(self):
        client = FakeRedis()
        limiter = RedisRateLimiter(client)

        assert await limiter.hit("k", 1, 60) == (True, 0)
        assert client.ttls == {"growwise:ratelimit:k": 60}

    @pytest.mark.asyncio
    async def test_blocked_reports_ttl(self):
        client = FakeRedis()
        limiter = RedisRateLimiter(client)
        await limiter.hit("k", 1, 60)
        client.ttls["growwise:ratelimit:k"] = 42

        assert await limiter.hit("k", 1, 60) == (False, 42)

    @pytest.mark.asyncio
    async def test_missing_expiry_is_restored(self):
        client = FakeRedis()
        client.counts["growwise:ratelimit:k"] = 5

        assert await RedisRateLimiter(client).hit("k", 1, 60) == (False, 60)
        assert client.ttls["growwise:ratelimit:k"] == 60
