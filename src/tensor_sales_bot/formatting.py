from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from .pricing import format_price, format_sol
from .rarity import classify, rarity_glyph
from .types import (
    CollectionStats,
    DiscordMessage,
    ImageAsset,
    Mint,
    SocialPost,
    TransactionEvent,
)

TENSOR_ITEM_BASE = "https://www.tensor.trade/item"
TENSOR_PORTFOLIO_BASE = "https://www.tensor.trade/portfolio"
XRAY_TX_BASE = "https://xray.helius.xyz/tx"
FOOTER_ICON_URL = "https://i.ibb.co/ZMRt7cp/tt.png"
FOOTER_TEXT = "Tensor Trade"
FACTION_TRAIT = "Faction"

# Discord renders a zero-width space as a blank spacer field.
_SPACER = {"name": "\u200b", "value": "\u200b", "inline": False}


def humanize(value: str) -> str:
    text = (value or "").lower().replace("_", " ")
    return text[:1].upper() + text[1:]


def short_id(identifier: str) -> str:
    return identifier[:4]


def build_item_link(onchain_id: str) -> str:
    return f"{TENSOR_ITEM_BASE}/{onchain_id}"


def build_tx_link(tx_id: str) -> str:
    return f"{XRAY_TX_BASE}/{tx_id}"


def build_wallet_link(wallet: str | None, missing: str) -> str:
    if not wallet:
        return missing
    return f"[{short_id(wallet)}]({TENSOR_PORTFOLIO_BASE}?wallet={wallet})"


def rarity_message(rank: int | None, population: int | None) -> str:
    if rank is None:
        return "TBD"
    tier = classify(rank, population)
    return f"{rarity_glyph(tier)} {tier.value} ({rank})"


def faction_of(mint: Mint) -> str:
    return mint.traits.get(FACTION_TRAIT) or ""


def attachment_name(mint: Mint, image: ImageAsset) -> str:
    return f"{mint.onchain_id}.{image.ext}"


def compose_discord_message(
    event: TransactionEvent,
    stats: CollectionStats,
    image: ImageAsset | None,
    spot_price: float,
    timestamp: datetime | None = None,
) -> DiscordMessage:
    tx = event.transaction
    mint = event.mint
    price = format_price(tx.gross_amount, spot_price)
    item_url = build_item_link(mint.onchain_id)

    filename = attachment_name(mint, image) if image else None
    thumbnail = f"attachment://{filename}" if filename else mint.image_uri

    wallets = (
        f"{build_wallet_link(tx.seller_id, 'n/a')} → "
        f"{build_wallet_link(tx.buyer_id, 'Unknown')}"
    )
    links = " | ".join(
        [
            f"[Tensor]({item_url})",
            f"[XRAY]({build_tx_link(tx.tx_id)})",
        ]
    )

    embed: dict[str, Any] = {
        "title": f"{humanize(tx.tx_type)} - {mint.name}",
        "url": item_url,
        "thumbnail": {"url": thumbnail},
        "fields": [
            {
                "name": "Rarity",
                "value": rarity_message(mint.rarity_rank, stats.total_supply),
                "inline": True,
            },
            {"name": "Faction", "value": faction_of(mint), "inline": True},
            dict(_SPACER),
            {"name": "Price", "value": f"◎{price.native} ({price.fiat})", "inline": True},
            {"name": "Floor", "value": f"◎{format_sol(stats.floor_price)}", "inline": True},
            dict(_SPACER),
            {"name": "Wallets", "value": wallets, "inline": True},
            {"name": "Links", "value": links, "inline": True},
        ],
        "footer": {"text": FOOTER_TEXT, "icon_url": FOOTER_ICON_URL},
    }
    if timestamp is not None:
        embed["timestamp"] = timestamp.astimezone(timezone.utc).isoformat()

    return DiscordMessage(embed=embed, attachment=image, attachment_name=filename)


def compose_social_post(
    event: TransactionEvent,
    stats: CollectionStats,
    image: ImageAsset | None,
    spot_price: float,
) -> SocialPost:
    tx = event.transaction
    mint = event.mint
    price = format_price(tx.gross_amount, spot_price)
    faction = faction_of(mint)

    lines = [
        f"😲 {mint.name} SOLD for ◎{price.native}",
        f"💵 {price.fiat} USD",
        f"📈 ◎{format_sol(stats.floor_price)} floor",
        rarity_message(mint.rarity_rank, stats.total_supply),
    ]
    if faction:
        lines.append(f"👥 {faction}")
    lines.append("")
    lines.append(f"→ {build_item_link(mint.onchain_id)}")
    lines.append("")
    lines.append(f"📝 {build_tx_link(tx.tx_id)}")

    return SocialPost(text="\n".join(lines), image=image)
