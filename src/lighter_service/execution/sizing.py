"""Order sizing — pure functions, no I/O."""

from __future__ import annotations

from decimal import ROUND_DOWN, Decimal

from lighter_service.models.decision import Action

QUANTITY_STEP = Decimal("0.00000001")

_SIDES = {Action.BUY: "buy", Action.SELL: "sell"}


def calculate_notional_usd(
    confidence: float,
    max_position_size_usd: float,
    override: float | None = None,
    available_balance: Decimal | None = None,
) -> Decimal:
    """USD size of the order before conversion to asset quantity.

    notional = min(override or max_position_size_usd * confidence, max_position_size_usd)

    When the account balance is known the notional is also capped by it.
    """
    cap = Decimal(str(max_position_size_usd))
    if override is not None:
        requested = Decimal(str(override))
    else:
        requested = cap * Decimal(str(confidence))
    notional = min(requested, cap)
    if available_balance is not None:
        notional = min(notional, max(available_balance, Decimal("0")))
    return notional


def calculate_quantity(notional_usd: Decimal, price: Decimal) -> Decimal:
    """Base-asset quantity for a notional at *price*, rounded down to the step."""
    if price <= 0:
        return Decimal("0")
    return (notional_usd / price).quantize(QUANTITY_STEP, rounding=ROUND_DOWN)


def side_for(action: Action) -> str:
    """Exchange order side for a tradable action."""
    try:
        return _SIDES[action]
    except KeyError:
        raise ValueError(f"action {action.value} has no order side") from None
