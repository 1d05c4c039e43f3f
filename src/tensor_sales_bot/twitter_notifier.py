from __future__ import annotations

import logging

import httpx
from oauthlib.oauth1 import Client as OAuth1Client

from .config import TwitterCredentials

logger = logging.getLogger(__name__)

MEDIA_UPLOAD_URL = "https://upload.twitter.com/1.1/media/upload.json"
TWEET_URL = "https://api.twitter.com/2/tweets"


class TwitterClient:
    """v1.1 media upload + v2 tweet creation with OAuth 1.0a user context."""

    def __init__(self, credentials: TwitterCredentials, timeout: float = 30.0) -> None:
        self._oauth = OAuth1Client(
            credentials.app_key,
            client_secret=credentials.app_secret,
            resource_owner_key=credentials.access_token,
            resource_owner_secret=credentials.access_secret,
        )
        self._client = httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        await self._client.aclose()

    def _auth_headers(self, url: str) -> dict[str, str]:
        # Multipart and JSON bodies are not part of the OAuth 1.0a signature base.
        _, headers, _ = self._oauth.sign(url, http_method="POST")
        return headers

    async def upload_media(self, data: bytes, mime: str) -> str:
        response = await self._client.post(
            MEDIA_UPLOAD_URL,
            headers=self._auth_headers(MEDIA_UPLOAD_URL),
            files={"media": ("media", data, mime)},
        )
        response.raise_for_status()
        media_id = response.json().get("media_id_string")
        if not media_id:
            raise RuntimeError(f"Twitter media upload returned no id: {response.text}")
        return str(media_id)

    async def post(self, text: str, media_ids: list[str] | None = None) -> str:
        body: dict[str, object] = {"text": text}
        if media_ids:
            body["media"] = {"media_ids": media_ids}

        response = await self._client.post(
            TWEET_URL,
            headers=self._auth_headers(TWEET_URL),
            json=body,
        )
        response.raise_for_status()
        tweet_id = (response.json().get("data") or {}).get("id", "")
        logger.info("Tweet posted id=%s", tweet_id)
        return str(tweet_id)
