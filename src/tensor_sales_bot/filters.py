from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from .config import Settings
from .types import TransactionEvent


class MissingTraitError(LookupError):
    """A trait the collection's filter depends on is absent from the mint."""

    def __init__(self, trait: str, onchain_id: str) -> None:
        super().__init__(f"Mint {onchain_id} has no '{trait}' attribute")
        self.trait = trait
        self.onchain_id = onchain_id


class EventFilter(Protocol):
    def accepts(self, event: TransactionEvent) -> bool: ...


class AcceptAll:
    def accepts(self, event: TransactionEvent) -> bool:
        return True


class TraitFilter:
    """Accept only mints whose ``trait`` value is in ``allowed``.

    When ``required`` is set, a mint without the trait raises
    :class:`MissingTraitError`; otherwise such a mint is simply rejected.
    """

    def __init__(self, trait: str, allowed: Iterable[str], required: bool = True) -> None:
        self.trait = trait
        self.allowed = frozenset(allowed)
        self.required = required

    def accepts(self, event: TransactionEvent) -> bool:
        value = event.mint.traits.get(self.trait)
        if value is None:
            if self.required:
                raise MissingTraitError(self.trait, event.mint.onchain_id)
            return False
        return value in self.allowed


class TxTypeFilter:
    def __init__(self, allowed: Iterable[str]) -> None:
        self.allowed = frozenset(t.upper() for t in allowed)

    def accepts(self, event: TransactionEvent) -> bool:
        return event.transaction.tx_type.upper() in self.allowed


class AllOf:
    def __init__(self, filters: Iterable[EventFilter]) -> None:
        self.filters = tuple(filters)

    def accepts(self, event: TransactionEvent) -> bool:
        return all(f.accepts(event) for f in self.filters)


def build_event_filter(settings: Settings) -> EventFilter:
    filters: list[EventFilter] = []
    if settings.allowed_tx_types:
        filters.append(TxTypeFilter(settings.allowed_tx_types))
    if settings.filter_trait:
        filters.append(
            TraitFilter(
                settings.filter_trait,
                settings.filter_trait_values,
                required=settings.filter_trait_required,
            )
        )

    if not filters:
        return AcceptAll()
    if len(filters) == 1:
        return filters[0]
    return AllOf(filters)
