from __future__ import annotations

import itertools
import json
import logging
from collections.abc import AsyncIterator
from typing import Any

import httpx
import websockets

from .types import CollectionStats, Mint, Transaction, TransactionEvent

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-TENSOR-API-KEY"
SUBPROTOCOL = "graphql-transport-ws"

TRANSACTION_SUBSCRIPTION = """
subscription NewTransactionTV2($slug: String!) {
  newTransactionTV2(slug: $slug) {
    tx {
      txId
      txType
      grossAmount
      sellerId
      buyerId
    }
    mint {
      onchainId
      name
      imageUri
      rarityRankTT
      attributes
    }
  }
}
"""

COLLECTION_STATS_QUERY = """
query InstrumentTV2($slug: String!) {
  instrumentTV2(slug: $slug) {
    slug
    statsV2 {
      buyNowPriceNetFees
      numMints
    }
  }
}
"""


class SubscriptionError(RuntimeError):
    """Connecting, subscribing or reading the Tensor subscription failed."""


class TensorClient:
    def __init__(
        self,
        api_url: str,
        ws_url: str,
        api_key: str,
        timeout: float = 15.0,
    ) -> None:
        self.api_url = api_url
        self.ws_url = ws_url
        self._headers = {API_KEY_HEADER: api_key}
        self._http = httpx.AsyncClient(timeout=timeout, headers=self._headers)
        self._ws: Any = None
        self._ids = itertools.count(1)
        self._subscriptions: dict[str, str] = {}

    async def connect(self) -> None:
        try:
            self._ws = await websockets.connect(
                self.ws_url,
                subprotocols=[SUBPROTOCOL],
                additional_headers=self._headers,
                ping_interval=20,
                ping_timeout=20,
            )
            await self._ws.send(
                json.dumps({"type": "connection_init", "payload": dict(self._headers)})
            )
            ack = json.loads(await self._ws.recv())
        except Exception as exc:
            raise SubscriptionError(f"Could not connect to {self.ws_url}: {exc}") from exc

        if ack.get("type") != "connection_ack":
            raise SubscriptionError(f"Unexpected connection reply: {ack}")
        logger.info("Connected to Tensor WS %s", self.ws_url)

    async def subscribe_to_slug(self, slug: str) -> None:
        if self._ws is None:
            raise SubscriptionError("subscribe_to_slug called before connect")
        if slug in self._subscriptions.values():
            return

        sub_id = str(next(self._ids))
        try:
            await self._ws.send(
                json.dumps(
                    {
                        "id": sub_id,
                        "type": "subscribe",
                        "payload": {
                            "query": TRANSACTION_SUBSCRIPTION,
                            "variables": {"slug": slug},
                        },
                    }
                )
            )
        except Exception as exc:
            raise SubscriptionError(f"Could not subscribe to {slug}: {exc}") from exc
        self._subscriptions[sub_id] = slug
        logger.info("Subscribed to %s (id=%s)", slug, sub_id)

    @property
    def active_slugs(self) -> frozenset[str]:
        return frozenset(self._subscriptions.values())

    def _raise_if_unsubscribed(self) -> None:
        if not self._subscriptions:
            raise SubscriptionError("Server ended every slug subscription")

    async def get_collection_stats(self, slug: str) -> CollectionStats:
        resp = await self._http.post(
            self.api_url,
            json={"query": COLLECTION_STATS_QUERY, "variables": {"slug": slug}},
        )
        resp.raise_for_status()
        return parse_collection_stats(resp.json())

    async def transactions(self) -> AsyncIterator[TransactionEvent]:
        if self._ws is None:
            raise SubscriptionError("transactions requested before connect")
        try:
            async for raw in self._ws:
                message = _decode(raw)
                if message is None:
                    continue
                kind = message.get("type")
                if kind == "ping":
                    await self._ws.send(json.dumps({"type": "pong"}))
                    continue
                if kind == "error":
                    slug = self._subscriptions.pop(str(message.get("id")), None)
                    logger.error("Subscription error for %s: %s", slug, message.get("payload"))
                    self._raise_if_unsubscribed()
                    continue
                if kind == "complete":
                    slug = self._subscriptions.pop(str(message.get("id")), None)
                    logger.warning("Subscription for %s completed by server", slug)
                    self._raise_if_unsubscribed()
                    continue
                for event in parse_ws_message(message, self._subscriptions):
                    yield event
        except websockets.ConnectionClosed as exc:
            raise SubscriptionError(f"Tensor WS closed: {exc}") from exc

    async def close(self) -> None:
        if self._ws is not None:
            await self._ws.close()
        await self._http.aclose()


def _decode(raw: str | bytes) -> dict[str, Any] | None:
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError:
        logger.debug("Ignoring non-JSON frame: %r", raw)
        return None
    return payload if isinstance(payload, dict) else None


def parse_ws_message(
    message: dict[str, Any] | str, subscriptions: dict[str, str]
) -> list[TransactionEvent]:
    if isinstance(message, str):
        decoded = _decode(message)
        if decoded is None:
            return []
        message = decoded

    if message.get("type") != "next":
        return []
    slug = subscriptions.get(str(message.get("id")))
    if slug is None:
        return []

    data = (message.get("payload") or {}).get("data") or {}
    record = data.get("newTransactionTV2")
    if not isinstance(record, dict):
        return []

    event = parse_transaction_event(record, slug)
    return [event] if event is not None else []


def parse_transaction_event(record: dict[str, Any], slug: str) -> TransactionEvent | None:
    tx = record.get("tx")
    mint = record.get("mint")
    if not isinstance(tx, dict) or not isinstance(mint, dict):
        return None

    tx_id = _string_or_none(tx.get("txId"))
    onchain_id = _string_or_none(mint.get("onchainId"))
    if not tx_id or not onchain_id:
        return None

    return TransactionEvent(
        transaction=Transaction(
            tx_id=tx_id,
            tx_type=str(tx.get("txType") or "UNKNOWN"),
            gross_amount=str(tx.get("grossAmount") or "0"),
            buyer_id=_string_or_none(tx.get("buyerId")),
            seller_id=_string_or_none(tx.get("sellerId")),
        ),
        mint=Mint(
            name=str(mint.get("name") or onchain_id),
            onchain_id=onchain_id,
            image_uri=str(mint.get("imageUri") or ""),
            rarity_rank=_int_or_none(mint.get("rarityRankTT")),
            attributes=_parse_attributes(mint.get("attributes")),
        ),
        slug=slug,
    )


def parse_collection_stats(payload: dict[str, Any]) -> CollectionStats:
    if payload.get("errors"):
        raise ValueError(f"GraphQL errors: {payload['errors']}")
    instrument = (payload.get("data") or {}).get("instrumentTV2")
    if not isinstance(instrument, dict):
        raise ValueError("Collection not found in stats response")
    stats = instrument.get("statsV2") or {}
    return CollectionStats(
        floor_price=str(stats.get("buyNowPriceNetFees") or "0"),
        total_supply=_int_or_none(stats.get("numMints")) or 0,
    )


def _parse_attributes(raw: Any) -> tuple[tuple[str, str], ...]:
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError:
            return ()
    if not isinstance(raw, list):
        return ()

    pairs: list[tuple[str, str]] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        name = item.get("trait_type")
        if name is None:
            continue
        value = item.get("value")
        pairs.append((str(name), "" if value is None else str(value)))
    return tuple(pairs)


def _string_or_none(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _int_or_none(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None
