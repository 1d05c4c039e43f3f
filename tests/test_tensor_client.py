import asyncio
import json

import pytest
import websockets

from tensor_sales_bot.tensor_client import (
    SubscriptionError,
    TensorClient,
    parse_collection_stats,
    parse_transaction_event,
    parse_ws_message,
)

SUBSCRIPTIONS = {"1": "skulls"}


def _next_message(record: dict, sub_id: str = "1") -> str:
    return json.dumps(
        {"id": sub_id, "type": "next", "payload": {"data": {"newTransactionTV2": record}}}
    )


RECORD = {
    "tx": {
        "txId": "5xTxSig",
        "txType": "SALE_BUY_NOW",
        "grossAmount": "2500000000",
        "sellerId": "SellerWallet",
        "buyerId": None,
    },
    "mint": {
        "onchainId": "MintAddr42",
        "name": "Skull #42",
        "imageUri": "https://img.example.com/42.png",
        "rarityRankTT": 5,
        "attributes": [
            {"trait_type": "Eyes", "value": "Skull Mask"},
            {"trait_type": "Faction", "value": "Ronin"},
        ],
    },
}


def test_parse_ws_message_extracts_event() -> None:
    events = parse_ws_message(_next_message(RECORD), SUBSCRIPTIONS)
    assert len(events) == 1
    event = events[0]

    assert event.slug == "skulls"
    assert event.transaction.tx_id == "5xTxSig"
    assert event.transaction.buyer_id is None
    assert event.transaction.seller_id == "SellerWallet"
    assert event.mint.rarity_rank == 5
    assert event.mint.traits.get("Eyes") == "Skull Mask"
    assert "Hat" not in event.mint.traits


def test_parse_ws_message_ignores_unknown_subscription_and_other_types() -> None:
    assert parse_ws_message(_next_message(RECORD, sub_id="9"), SUBSCRIPTIONS) == []
    assert parse_ws_message('{"type":"ka"}', SUBSCRIPTIONS) == []
    assert parse_ws_message("not json", SUBSCRIPTIONS) == []


def test_parse_transaction_event_accepts_json_string_attributes() -> None:
    record = {**RECORD, "mint": {**RECORD["mint"], "attributes": json.dumps(RECORD["mint"]["attributes"]), "rarityRankTT": None}}
    event = parse_transaction_event(record, "skulls")
    assert event is not None
    assert event.mint.attributes == (("Eyes", "Skull Mask"), ("Faction", "Ronin"))
    assert event.mint.rarity_rank is None


def test_parse_transaction_event_requires_ids() -> None:
    record = {**RECORD, "tx": {**RECORD["tx"], "txId": ""}}
    assert parse_transaction_event(record, "skulls") is None


def test_parse_collection_stats() -> None:
    payload = {
        "data": {
            "instrumentTV2": {
                "slug": "skulls",
                "statsV2": {"buyNowPriceNetFees": "1234000000", "numMints": 5000},
            }
        }
    }
    stats = parse_collection_stats(payload)
    assert stats.floor_price == "1234000000"
    assert stats.total_supply == 5000


def test_parse_collection_stats_errors() -> None:
    with pytest.raises(ValueError):
        parse_collection_stats({"errors": [{"message": "bad slug"}]})
    with pytest.raises(ValueError):
        parse_collection_stats({"data": {"instrumentTV2": None}})


class FakeWebSocket:
    def __init__(self, frames=(), error: Exception | None = None) -> None:
        self.frames = list(frames)
        self.error = error
        self.sent: list[dict] = []
        self.closed = False

    async def send(self, data: str) -> None:
        self.sent.append(json.loads(data))

    async def close(self) -> None:
        self.closed = True

    async def __aiter__(self):
        for frame in self.frames:
            yield frame
        if self.error is not None:
            raise self.error


def _client(ws: FakeWebSocket) -> TensorClient:
    client = TensorClient("https://api.tensor.so/graphql", "wss://api.tensor.so/graphql", "key")
    client._ws = ws
    return client


def _run(client: TensorClient, *slugs: str) -> list:
    async def scenario() -> list:
        try:
            for slug in slugs:
                await client.subscribe_to_slug(slug)
            return [event async for event in client.transactions()]
        finally:
            await client.close()

    return asyncio.run(scenario())


def test_subscribe_to_slug_is_idempotent() -> None:
    ws = FakeWebSocket()
    client = _client(ws)

    _run(client, "skulls", "skulls", "apes")

    subscribes = [m for m in ws.sent if m["type"] == "subscribe"]
    assert [m["payload"]["variables"]["slug"] for m in subscribes] == ["skulls", "apes"]
    assert [m["id"] for m in subscribes] == ["1", "2"]
    assert client.active_slugs == frozenset({"skulls", "apes"})


def test_ping_is_answered_with_pong() -> None:
    ws = FakeWebSocket(frames=['{"type":"ping"}', _next_message(RECORD)])

    events = _run(_client(ws), "skulls")

    assert {"type": "pong"} in ws.sent
    assert len(events) == 1
    assert events[0].transaction.tx_id == "5xTxSig"


def test_error_frame_for_last_slug_raises() -> None:
    ws = FakeWebSocket(frames=['{"id":"1","type":"error","payload":[{"message":"bad"}]}'])
    client = _client(ws)

    with pytest.raises(SubscriptionError):
        _run(client, "skulls")
    assert client.active_slugs == frozenset()


def test_complete_frame_for_last_slug_raises() -> None:
    ws = FakeWebSocket(frames=['{"id":"1","type":"complete"}'])

    with pytest.raises(SubscriptionError):
        _run(_client(ws), "skulls")


def test_error_frame_for_one_slug_keeps_others() -> None:
    ws = FakeWebSocket(
        frames=['{"id":"1","type":"error"}', _next_message(RECORD, sub_id="2")]
    )
    client = _client(ws)

    events = _run(client, "skulls", "apes")

    assert [event.slug for event in events] == ["apes"]
    assert client.active_slugs == frozenset({"apes"})


def test_connection_closed_becomes_subscription_error() -> None:
    ws = FakeWebSocket(error=websockets.ConnectionClosed(None, None))

    with pytest.raises(SubscriptionError):
        _run(_client(ws), "skulls")
