from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from .types import DiscordMessage

logger = logging.getLogger(__name__)

# Discord rejects empty embed field values.
_BLANK = "\u200b"


class DiscordWebhook:
    def __init__(self, url: str, timeout: float = 15.0) -> None:
        self.url = url
        self._client = httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        await self._client.aclose()

    async def send(self, message: DiscordMessage) -> None:
        body = {"embeds": [discord_safe_embed(message.embed)]}

        if message.attachment is not None and message.attachment_name:
            response = await self._client.post(
                self.url,
                data={"payload_json": json.dumps(body)},
                files={
                    "files[0]": (
                        message.attachment_name,
                        message.attachment.data,
                        message.attachment.mime,
                    )
                },
            )
        else:
            response = await self._client.post(self.url, json=body)

        response.raise_for_status()


def discord_safe_embed(embed: dict[str, Any]) -> dict[str, Any]:
    fields = [
        {
            **field,
            "name": field.get("name") or _BLANK,
            "value": field.get("value") or _BLANK,
        }
        for field in embed.get("fields", [])
    ]
    return {**embed, "fields": fields}
