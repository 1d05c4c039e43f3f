from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from functools import cached_property
from typing import Any


@dataclass(frozen=True)
class Transaction:
    tx_id: str
    tx_type: str
    gross_amount: str
    buyer_id: str | None
    seller_id: str | None


class Traits(Mapping[str, str]):
    """Trait name -> value lookup built once per mint.

    Absence is answered with ``None`` / ``in``, never with an exception from
    ``get``. Duplicate trait names keep the first value.
    """

    def __init__(self, attributes: tuple[tuple[str, str], ...]) -> None:
        self._values: dict[str, str] = {}
        for name, value in attributes:
            self._values.setdefault(name, value)

    def __getitem__(self, name: str) -> str:
        return self._values[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)


@dataclass(frozen=True)
class Mint:
    name: str
    onchain_id: str
    image_uri: str
    rarity_rank: int | None
    attributes: tuple[tuple[str, str], ...] = ()

    @cached_property
    def traits(self) -> Traits:
        return Traits(self.attributes)


@dataclass(frozen=True)
class TransactionEvent:
    transaction: Transaction
    mint: Mint
    slug: str


@dataclass(frozen=True)
class CollectionStats:
    floor_price: str
    total_supply: int


@dataclass(frozen=True)
class ImageAsset:
    data: bytes
    ext: str
    mime: str


@dataclass(frozen=True)
class PriceDisplay:
    native: str
    fiat: str


@dataclass(frozen=True)
class DiscordMessage:
    embed: dict[str, Any]
    attachment: ImageAsset | None = None
    attachment_name: str | None = None


@dataclass(frozen=True)
class SocialPost:
    text: str
    image: ImageAsset | None = None
