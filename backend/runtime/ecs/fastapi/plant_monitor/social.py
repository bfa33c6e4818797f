import logging
from typing import Any, Dict, Optional, Protocol

import requests

from .config import AppConfig
from .errors import ConfigurationError, CredentialVerificationError, UpstreamServiceError

logger = logging.getLogger(__name__)

SERVICE_NAME = "social posting"
MAX_POST_LENGTH = 280


class SocialPoster(Protocol):
    def post(self, text: str) -> str:
        ...


def fit_post_length(text: str, limit: int = MAX_POST_LENGTH) -> str:
    text = text.strip()
    if len(text) <= limit:
        return text
    return text[: limit - 1].rstrip() + "…"


class XPoster:
    """Posts to X (Twitter) API v2 with a user-context bearer token.

    Every post is preceded by ``verify_credentials``; a rejected token raises
    ``CredentialVerificationError`` and no post request is sent.
    """

    def __init__(self, access_token: Optional[str], base_url: str = "https://api.twitter.com", timeout: float = 10.0) -> None:
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @classmethod
    def from_config(cls, config: AppConfig) -> "XPoster":
        return cls(
            access_token=config.x_access_token,
            base_url=config.x_api_base_url,
            timeout=config.social_timeout_seconds,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.access_token)

    def _headers(self) -> Dict[str, str]:
        if not self.is_configured:
            raise ConfigurationError("Social posting is not configured: X_ACCESS_TOKEN is missing")
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Accept": "application/json",
        }

    def verify_credentials(self) -> str:
        """Return the authenticated username."""
        headers = self._headers()
        try:
            resp = requests.get(f"{self.base_url}/2/users/me", headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            raise UpstreamServiceError(SERVICE_NAME, f"Credential verification failed: {exc}") from exc

        if resp.status_code >= 400:
            logger.warning("X credential verification failed: %s", resp.status_code)
            raise CredentialVerificationError(
                SERVICE_NAME,
                _error_message(resp, "Social posting credentials could not be verified"),
                resp.status_code,
            )
        username = str(resp.json().get("data", {}).get("username", ""))
        logger.info("Verified X credentials for @%s", username)
        return username

    def post(self, text: str) -> str:
        """Publish ``text`` and return the new post id."""
        self.verify_credentials()
        payload = {"text": fit_post_length(text)}
        headers = {**self._headers(), "Content-Type": "application/json"}
        try:
            resp = requests.post(f"{self.base_url}/2/tweets", headers=headers, json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            raise UpstreamServiceError(SERVICE_NAME, f"Failed to post message: {exc}") from exc

        if resp.status_code >= 400:
            logger.error("X post failed: %s", resp.status_code)
            raise UpstreamServiceError(SERVICE_NAME, _error_message(resp, "Failed to post message"), resp.status_code)

        post_id = str(resp.json().get("data", {}).get("id", ""))
        logger.info("Posted message %s", post_id)
        return post_id


def _error_message(resp: Any, default: str) -> str:
    try:
        body = resp.json()
    except ValueError:
        return default
    if isinstance(body, dict):
        return str(body.get("detail") or body.get("title") or default)
    return default
