"""
exchange_state.py

Alpha/beta exchange-pair state machine core for the swap wallet.

Design goals:
- Pure reducer transitions: (state, action) -> next_state
- Alpha amount is authoritative, beta amount is always derived from the rate
- Asset types on the two sides never collide (the other side is displaced)
- Side swaps relabel, never recompute
- Closed action set, fail fast on anything else
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
import math
from typing import Any, Iterable, Literal


SlotName = Literal["alpha", "beta"]


class AssetType(str, Enum):
    BTC = "BTC"
    USDT = "USDT"

    @property
    def ticker(self) -> str:
        return _TICKERS[self]


# Settlement-network tickers used by the wallet for balance updates.
_TICKERS = {
    AssetType.BTC: "L-BTC",
    AssetType.USDT: "L-USDt",
}


def asset_for_ticker(ticker: str) -> AssetType | None:
    for asset, known in _TICKERS.items():
        if known == ticker:
            return asset
    return None


# --------------------------- Errors ---------------------------


class ExchangeStateError(ValueError):
    """Base class for reducer contract violations."""


class InvalidNumeric(ExchangeStateError):
    pass


class UnknownAsset(ExchangeStateError):
    pass


class UnknownAction(ExchangeStateError):
    pass


class InvalidTransactionId(ExchangeStateError):
    pass


# --------------------------- State ---------------------------


@dataclass(frozen=True)
class AssetSlot:
    type: AssetType
    amount: float


@dataclass(frozen=True)
class ExchangePairState:
    alpha: AssetSlot
    beta: AssetSlot
    # beta units per 1 alpha unit
    rate: float
    tx_id: str = ""


# --------------------------- Actions ---------------------------


@dataclass(frozen=True)
class SetAlphaAmount:
    value: float


@dataclass(frozen=True)
class SetAlphaType:
    value: AssetType


@dataclass(frozen=True)
class SetBetaType:
    value: AssetType


@dataclass(frozen=True)
class SetRate:
    value: float


@dataclass(frozen=True)
class SwapSides:
    pass


@dataclass(frozen=True)
class PublishTransaction:
    value: str


Action = SetAlphaAmount | SetAlphaType | SetBetaType | SetRate | SwapSides | PublishTransaction

ACTION_TYPES: dict[str, type] = {
    "SetAlphaAmount": SetAlphaAmount,
    "SetAlphaType": SetAlphaType,
    "SetBetaType": SetBetaType,
    "SetRate": SetRate,
    "SwapSides": SwapSides,
    "PublishTransaction": PublishTransaction,
}

# Tags written by the extension UI's action log.
ACTION_ALIASES: dict[str, str] = {
    "UpdateAlphaAmount": "SetAlphaAmount",
    "UpdateAlphaAssetType": "SetAlphaType",
    "UpdateBetaAssetType": "SetBetaType",
    "UpdateRate": "SetRate",
    "SwapAssetTypes": "SwapSides",
}


# --------------------------- Helpers ---------------------------


def _finite(value: Any, what: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidNumeric(f"{what} must be a number, got {value!r}")
    if not math.isfinite(value):
        raise InvalidNumeric(f"{what} must be finite, got {value!r}")
    return float(value)


def _amount(value: Any) -> float:
    amount = _finite(value, "amount")
    if amount < 0:
        raise InvalidNumeric(f"amount must be >= 0, got {amount!r}")
    return amount


def _rate(value: Any) -> float:
    rate = _finite(value, "rate")
    if rate <= 0:
        raise InvalidNumeric(f"rate must be > 0, got {rate!r}")
    return rate


def coerce_asset(value: Any) -> AssetType:
    if isinstance(value, AssetType):
        return value
    try:
        return AssetType(str(value).strip().upper())
    except ValueError:
        raise UnknownAsset(f"unknown asset type: {value!r}") from None


def _tx_id(value: Any) -> str:
    if not isinstance(value, str) or not value:
        raise InvalidTransactionId(f"transaction id must be a non-empty string, got {value!r}")
    return value


def _assign_type(state: ExchangePairState, primary: SlotName, asset: AssetType) -> ExchangePairState:
    """
    Give `asset` to the primary slot, handing the primary's old type to the
    other slot when both would otherwise hold the same asset.
    """
    secondary: SlotName = "beta" if primary == "alpha" else "alpha"
    own: AssetSlot = getattr(state, primary)
    other: AssetSlot = getattr(state, secondary)
    if other.type == asset:
        other = replace(other, type=own.type)
    own = replace(own, type=asset)
    return replace(state, **{primary: own, secondary: other})


def check_invariants(state: ExchangePairState) -> list[str]:
    """
    Strict invariant checker for pair state.
    """
    violations: list[str] = []

    for name in ("alpha", "beta"):
        slot: AssetSlot = getattr(state, name)
        if not isinstance(slot.type, AssetType):
            violations.append(f"{name} type must be a known asset")
        amount = slot.amount
        if isinstance(amount, bool) or not isinstance(amount, (int, float)) or not math.isfinite(amount):
            violations.append(f"{name} amount must be finite")
        elif amount < 0:
            violations.append(f"{name} amount must be >= 0")

    if state.alpha.type == state.beta.type:
        violations.append("alpha and beta must hold different assets")

    rate = state.rate
    if isinstance(rate, bool) or not isinstance(rate, (int, float)) or not math.isfinite(rate) or rate <= 0:
        violations.append("rate must be finite and > 0")

    if not isinstance(state.tx_id, str):
        violations.append("tx_id must be a string")

    return violations


def initial_state(
    alpha_type: Any = AssetType.BTC,
    alpha_amount: float = 0.01,
    beta_type: Any = AssetType.USDT,
    beta_amount: float = 191.34,
    rate: float = 19133.74,
) -> ExchangePairState:
    state = ExchangePairState(
        alpha=AssetSlot(type=coerce_asset(alpha_type), amount=_amount(alpha_amount)),
        beta=AssetSlot(type=coerce_asset(beta_type), amount=_amount(beta_amount)),
        rate=_rate(rate),
    )
    violations = check_invariants(state)
    if violations:
        raise ExchangeStateError("invalid initial state: " + "; ".join(violations))
    return state


def to_dict(state: ExchangePairState) -> dict:
    return {
        "alpha": {"type": state.alpha.type.value, "amount": state.alpha.amount},
        "beta": {"type": state.beta.type.value, "amount": state.beta.amount},
        "rate": state.rate,
        "tx_id": state.tx_id,
    }


def _slot_dict(data: Any, name: str) -> dict:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ExchangeStateError(f"{name} must be an object, got {data!r}")
    return data


def from_dict(data: dict) -> ExchangePairState:
    if not isinstance(data, dict):
        raise ExchangeStateError(f"state must be an object, got {data!r}")
    alpha = _slot_dict(data.get("alpha"), "alpha")
    beta = _slot_dict(data.get("beta"), "beta")
    state = ExchangePairState(
        alpha=AssetSlot(type=coerce_asset(alpha.get("type")), amount=_amount(alpha.get("amount", 0.0))),
        beta=AssetSlot(type=coerce_asset(beta.get("type")), amount=_amount(beta.get("amount", 0.0))),
        rate=_rate(data.get("rate")),
        tx_id=str(data.get("tx_id", data.get("txId", "")) or ""),
    )
    violations = check_invariants(state)
    if violations:
        raise ExchangeStateError("invalid state: " + "; ".join(violations))
    return state


def action_to_dict(action: Action) -> dict:
    tag = type(action).__name__
    if ACTION_TYPES.get(tag) is not type(action):
        raise UnknownAction(f"unknown action: {action!r}")
    if isinstance(action, SwapSides):
        return {"type": tag}
    value = action.value
    if isinstance(value, AssetType):
        value = value.value
    return {"type": tag, "value": value}


def action_from_dict(data: dict) -> Action:
    """
    Decode a tagged action dict from a serialized action stream.

    Tags and asset symbols are validated here; numbers and transaction ids
    are left for reduce() to check.
    """
    if not isinstance(data, dict):
        raise UnknownAction(f"action must be an object, got {data!r}")
    raw_tag = str(data.get("type", ""))
    tag = ACTION_ALIASES.get(raw_tag, raw_tag)
    builder = ACTION_TYPES.get(tag)
    if builder is None:
        raise UnknownAction(f"unknown action type: {raw_tag!r}")
    if builder is SwapSides:
        return SwapSides()
    if "value" not in data:
        raise UnknownAction(f"{raw_tag} action is missing its value")
    value = data["value"]
    if builder in (SetAlphaType, SetBetaType):
        value = coerce_asset(value)
    return builder(value)


# --------------------------- Reducer ---------------------------


def reduce(state: ExchangePairState, action: Action) -> ExchangePairState:
    """
    Pure reducer for one action.
    """
    if isinstance(action, SetAlphaAmount):
        amount = _amount(action.value)
        return replace(
            state,
            alpha=replace(state.alpha, amount=amount),
            beta=replace(state.beta, amount=amount * state.rate),
        )

    if isinstance(action, SetAlphaType):
        return _assign_type(state, "alpha", coerce_asset(action.value))

    if isinstance(action, SetBetaType):
        return _assign_type(state, "beta", coerce_asset(action.value))

    if isinstance(action, SetRate):
        rate = _rate(action.value)
        # Alpha stays put under a moving rate; only the derived side follows.
        return replace(
            state,
            beta=replace(state.beta, amount=state.alpha.amount * rate),
            rate=rate,
        )

    if isinstance(action, SwapSides):
        return replace(state, alpha=state.beta, beta=state.alpha)

    if isinstance(action, PublishTransaction):
        return replace(state, tx_id=_tx_id(action.value))

    raise UnknownAction(f"unknown action: {action!r}")


def replay(state: ExchangePairState, actions: Iterable[Action]) -> ExchangePairState:
    st = state
    for action in actions:
        st = reduce(st, action)
    return st
