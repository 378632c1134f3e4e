"""
Google reCAPTCHA v2 verification for the registration form.
"""

import logging
from typing import Optional

import httpx

from . import config
from .exceptions import ValidationError

logger = logging.getLogger(__name__)

RECAPTCHA_VERIFY_URL = "https://www.google.com/recaptcha/api/siteverify"


async def verify_captcha(token: Optional[str], ip: Optional[str] = None) -> None:
    """Raise ``ValidationError`` for a missing or rejected token.

    Skipped when RECAPTCHA_SECRET_KEY is not configured. An unreachable Google
    endpoint lets the request through.
    """
    if not config.RECAPTCHA_SECRET_KEY:
        logger.warning("RECAPTCHA_SECRET_KEY not configured - skipping CAPTCHA verification")
        return

    if not token:
        raise ValidationError("reCAPTCHA verification is required")

    params = {"secret": config.RECAPTCHA_SECRET_KEY, "response": token}
    if ip:
        params["remoteip"] = ip

    try:
        async with httpx.AsyncClient() as client:
            response = await client.post(RECAPTCHA_VERIFY_URL, params=params, timeout=10.0)
            result = response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.error("reCAPTCHA verification error: %s", e)
        return

    if not result.get("success", False):
        logger.warning("reCAPTCHA rejected for IP %s: %s", ip, result.get("error-codes", []))
        raise ValidationError("reCAPTCHA verification failed. Please try again.")
