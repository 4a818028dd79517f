from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_DOWN


def _to_decimal(value: str | int | float | Decimal) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return Decimal(value)
    return Decimal(str(value).strip())


def to_erc20_raw(amount_tokens: str | int | float | Decimal, decimals: int) -> int:
    """Convert a human amount ("0.1") to raw token units, rounding down."""
    try:
        amt = _to_decimal(amount_tokens)
    except InvalidOperation as exc:
        raise ValueError(f"Invalid token amount: {amount_tokens}") from exc
    if amt < 0:
        raise ValueError("Amount must be non-negative")
    scale = Decimal(10) ** int(decimals)
    return int((amt * scale).to_integral_value(rounding=ROUND_DOWN))


def from_erc20_raw(amount_raw: int | str, decimals: int) -> Decimal:
    return Decimal(int(amount_raw)) / (Decimal(10) ** int(decimals))


def bps_to_percent(bps: int | str | None) -> Decimal:
    if bps is None or str(bps).strip() == "":
        return Decimal(0)
    return (Decimal(int(bps)) / Decimal(100)).quantize(Decimal("0.01"))
