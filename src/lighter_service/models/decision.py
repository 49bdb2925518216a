"""Decision model — a trading signal written by an external agent."""

from __future__ import annotations

import math
from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator


class Action(str, Enum):
    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"
    EMERGENCY_STOP = "EMERGENCY_STOP"


TRADABLE_ACTIONS = frozenset({Action.BUY, Action.SELL})

# Symbol recorded on an emergency stop that names none.
ALL_SYMBOLS = "ALL"


class Decision(BaseModel):
    """A proposed trading action. Immutable once parsed.

    ``timestamp`` is supplied by the producing agent and doubles as the
    dedupe key: a running instance processes each timestamp at most once.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    action: Action
    symbol: str
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str = ""
    timestamp: int
    position_size_override: float | None = Field(
        default=None,
        gt=0,
        validation_alias=AliasChoices(
            "position_size_override", "positionSizeOverride", "position_size",
        ),
    )
    strategy: str = "RL80"

    @model_validator(mode="before")
    @classmethod
    def _relax_emergency_stop(cls, data):
        """An emergency stop is honoured whatever its symbol or confidence."""
        if not isinstance(data, dict):
            return data
        action = data.get("action")
        if not (isinstance(action, str) and action.strip().upper() == Action.EMERGENCY_STOP.value):
            return data
        data = dict(data)
        symbol = data.get("symbol")
        if not isinstance(symbol, str) or not symbol.strip():
            data["symbol"] = ALL_SYMBOLS
        try:
            confidence = float(data.get("confidence"))
        except (TypeError, ValueError):
            confidence = 1.0
        if math.isnan(confidence):
            confidence = 1.0
        data["confidence"] = min(max(confidence, 0.0), 1.0)
        return data

    @field_validator("position_size_override", mode="before")
    @classmethod
    def _falsy_override_is_none(cls, v):
        # 0, null and negative sizes mean "use the confidence-scaled size".
        if v is None or v == "":
            return None
        try:
            if float(v) <= 0:
                return None
        except (TypeError, ValueError):
            pass
        return v

    @field_validator("action", mode="before")
    @classmethod
    def _normalise_action(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("symbol", mode="before")
    @classmethod
    def _normalise_symbol(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @property
    def is_tradable(self) -> bool:
        return self.action in TRADABLE_ACTIONS
