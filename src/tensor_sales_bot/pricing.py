from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from .types import PriceDisplay

LAMPORTS_PER_SOL = 1_000_000_000

_CENTS = Decimal("0.01")


def parse_lamports(lamports: int | str) -> Decimal:
    """Parse a lamport amount; integral decimal strings such as ``"2.5e9"`` are accepted."""
    try:
        value = Decimal(str(lamports).strip())
    except InvalidOperation as exc:
        raise ValueError(f"Invalid lamport amount: {lamports!r}") from exc
    if not value.is_finite() or value != value.to_integral_value():
        raise ValueError(f"Lamport amount must be a whole number: {lamports!r}")
    return value


def lamports_to_sol(lamports: int | str) -> Decimal:
    """Convert lamports to SOL, rounded half-up to 2 decimal places."""
    value = parse_lamports(lamports) / Decimal(LAMPORTS_PER_SOL)
    return value.quantize(_CENTS, rounding=ROUND_HALF_UP)


def format_sol(lamports: int | str) -> str:
    return f"{lamports_to_sol(lamports):.2f}"


def format_usd(value: Decimal | float) -> str:
    amount = Decimal(str(value)).quantize(_CENTS, rounding=ROUND_HALF_UP)
    if amount < 0:
        return f"-${-amount:,.2f}"
    return f"${amount:,.2f}"


def format_price(lamports: int | str, spot_price: float) -> PriceDisplay:
    # Fiat is derived from the already rounded SOL amount so both lines agree.
    sol = lamports_to_sol(lamports)
    usd = sol * Decimal(str(spot_price))
    return PriceDisplay(native=f"{sol:.2f}", fiat=format_usd(usd))
