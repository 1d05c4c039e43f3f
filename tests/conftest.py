from __future__ import annotations

import pytest

from tensor_sales_bot.config import Settings
from tensor_sales_bot.types import CollectionStats, Mint, Transaction, TransactionEvent

SKULL_VALUES = ("Skull Mask", "Skull Mask - Dark", "Horned Skull Mask", "Horned Skull Mask - Dark")


def build_event(
    *,
    tx_type: str = "SALE_BUY_NOW",
    gross_amount: str = "2500000000",
    buyer_id: str | None = "BuyerWallet1111111111111111111111",
    seller_id: str | None = "SellerWallet222222222222222222222",
    rarity_rank: int | None = 5,
    attributes: tuple[tuple[str, str], ...] = (("Eyes", "Skull Mask"), ("Faction", "Ronin")),
    slug: str = "skulls",
) -> TransactionEvent:
    return TransactionEvent(
        transaction=Transaction(
            tx_id="5xTxSig",
            tx_type=tx_type,
            gross_amount=gross_amount,
            buyer_id=buyer_id,
            seller_id=seller_id,
        ),
        mint=Mint(
            name="Skull #42",
            onchain_id="MintAddr42",
            image_uri="https://img.example.com/42.png",
            rarity_rank=rarity_rank,
            attributes=attributes,
        ),
        slug=slug,
    )


def build_settings(**overrides: object) -> Settings:
    values: dict[str, object] = dict(
        tensor_api_url="https://api.tensor.so/graphql",
        tensor_ws_url="wss://api.tensor.so/graphql",
        tensor_api_key="key",
        discord_webhooks=("https://discord.com/api/webhooks/1/a",),
        slugs=("skulls",),
        twitter=None,
        filter_trait="Eyes",
        filter_trait_values=SKULL_VALUES,
        filter_trait_required=True,
        allowed_tx_types=(),
        coingecko_api_base="https://api.coingecko.com/api/v3",
        request_timeout_seconds=1.0,
        health_log_interval_seconds=1000,
        log_level="INFO",
    )
    values.update(overrides)
    return Settings(**values)  # type: ignore[arg-type]


@pytest.fixture
def event() -> TransactionEvent:
    return build_event()


@pytest.fixture
def stats() -> CollectionStats:
    return CollectionStats(floor_price="1234000000", total_supply=10_000)
