import pytest
from conftest import SKULL_VALUES, build_event, build_settings

from tensor_sales_bot.filters import (
    AcceptAll,
    AllOf,
    MissingTraitError,
    TraitFilter,
    TxTypeFilter,
    build_event_filter,
)


def test_trait_filter_accepts_allowed_value() -> None:
    f = TraitFilter("Eyes", SKULL_VALUES)
    assert f.accepts(build_event(attributes=(("Eyes", "Horned Skull Mask"),))) is True


def test_trait_filter_rejects_other_value() -> None:
    f = TraitFilter("Eyes", SKULL_VALUES)
    assert f.accepts(build_event(attributes=(("Eyes", "Laser"),))) is False


def test_trait_filter_missing_required_trait_raises() -> None:
    f = TraitFilter("Eyes", SKULL_VALUES)
    with pytest.raises(MissingTraitError) as exc_info:
        f.accepts(build_event(attributes=(("Faction", "Ronin"),)))
    assert exc_info.value.trait == "Eyes"
    assert exc_info.value.onchain_id == "MintAddr42"


def test_trait_filter_missing_optional_trait_rejects() -> None:
    f = TraitFilter("Eyes", SKULL_VALUES, required=False)
    assert f.accepts(build_event(attributes=())) is False


def test_tx_type_filter_is_case_insensitive() -> None:
    f = TxTypeFilter(["sale_buy_now", "SALE_ACCEPT_BID"])
    assert f.accepts(build_event(tx_type="SALE_BUY_NOW")) is True
    assert f.accepts(build_event(tx_type="LIST")) is False


def test_all_of_checks_tx_type_before_trait() -> None:
    f = AllOf([TxTypeFilter(["SALE_BUY_NOW"]), TraitFilter("Eyes", SKULL_VALUES)])
    # Rejected by tx type, so the missing trait never raises.
    assert f.accepts(build_event(tx_type="DELIST", attributes=())) is False


def test_build_event_filter_from_settings() -> None:
    assert isinstance(build_event_filter(build_settings(filter_trait=None)), AcceptAll)
    assert isinstance(build_event_filter(build_settings()), TraitFilter)
    combined = build_event_filter(build_settings(allowed_tx_types=("SALE_BUY_NOW",)))
    assert isinstance(combined, AllOf)
    assert isinstance(combined.filters[0], TxTypeFilter)
