"""Data models for the ingestor module."""

import contextlib
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Generic, TypeVar

T = TypeVar("T")


def _parse_time(value: Any) -> datetime | None:
    """Parse unix seconds or an ISO-8601 string into an aware datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(float(value), tz=UTC)
    if isinstance(value, str):
        with contextlib.suppress(ValueError):
            return datetime.fromtimestamp(float(value), tz=UTC)
        with contextlib.suppress(ValueError):
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    return None


def _float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _str_or_none(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


@dataclass(frozen=True)
class DomeOrder:
    """An executed order for one outcome token of a market."""

    market_slug: str
    side: str
    price: float
    shares: float
    shares_normalized: float
    timestamp: datetime
    token_id: str | None = None
    condition_id: str | None = None
    tx_hash: str | None = None
    order_hash: str | None = None
    user: str | None = None
    title: str | None = None

    @property
    def volume_usd(self) -> float:
        """Notional value: price x normalized shares."""
        return self.price * self.shares_normalized

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DomeOrder":
        """Create a DomeOrder from an API response item."""
        timestamp = _parse_time(data.get("timestamp"))
        if timestamp is None:
            raise ValueError(f"order has no valid timestamp: {data.get('order_hash')!r}")
        return cls(
            market_slug=str(data.get("market_slug") or "unknown"),
            side=str(data.get("side") or "BUY").upper(),
            price=_float(data.get("price")),
            shares=_float(data.get("shares")),
            shares_normalized=_float(data.get("shares_normalized")),
            timestamp=timestamp,
            token_id=_str_or_none(data.get("token_id")),
            condition_id=_str_or_none(data.get("condition_id")),
            tx_hash=_str_or_none(data.get("tx_hash")),
            order_hash=_str_or_none(data.get("order_hash")),
            user=_str_or_none(data.get("user")),
            title=_str_or_none(data.get("title")),
        )


@dataclass(frozen=True)
class DomeOutcome:
    """One tradable side of a market."""

    token_id: str
    label: str

    def to_dict(self) -> dict[str, str]:
        return {"id": self.token_id, "label": self.label}


@dataclass(frozen=True)
class DomeMarket:
    """Market metadata and resolution state."""

    market_slug: str
    title: str
    condition_id: str | None = None
    tags: tuple[str, ...] = ()
    status: str = "open"
    winning_side: str | None = None
    side_a_id: str | None = None
    side_b_id: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    completed_time: datetime | None = None
    volume_total: float = 0.0
    image_url: str | None = None
    outcomes: tuple[DomeOutcome, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DomeMarket":
        """Create a DomeMarket from an API response item."""
        side_a = data.get("side_a") or {}
        side_b = data.get("side_b") or {}
        winning = data.get("winning_side")
        if isinstance(winning, dict):
            winning = winning.get("id")
        outcomes = tuple(
            DomeOutcome(token_id=str(side["id"]), label=str(side.get("label") or ""))
            for side in (side_a, side_b)
            if isinstance(side, dict) and side.get("id")
        )
        return cls(
            market_slug=str(data["market_slug"]),
            title=str(data.get("title") or ""),
            condition_id=_str_or_none(data.get("condition_id")),
            tags=tuple(str(t) for t in (data.get("tags") or [])),
            status=str(data.get("status") or "open"),
            winning_side=_str_or_none(winning),
            side_a_id=_str_or_none(side_a.get("id")) if isinstance(side_a, dict) else None,
            side_b_id=_str_or_none(side_b.get("id")) if isinstance(side_b, dict) else None,
            start_time=_parse_time(data.get("start_time")),
            end_time=_parse_time(data.get("end_time")),
            completed_time=_parse_time(data.get("completed_time")),
            volume_total=max(0.0, _float(data.get("volume_total"))),
            image_url=_str_or_none(data.get("image")),
            outcomes=outcomes,
        )


@dataclass(frozen=True)
class DomeActivity:
    """A non-trade wallet event (redeem, merge, split)."""

    side: str
    market_slug: str
    timestamp: datetime
    shares_normalized: float = 0.0
    price: float = 0.0
    token_id: str | None = None
    condition_id: str | None = None
    tx_hash: str | None = None
    user: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DomeActivity":
        """Create a DomeActivity from an API response item."""
        timestamp = _parse_time(data.get("timestamp"))
        if timestamp is None:
            raise ValueError("activity has no valid timestamp")
        return cls(
            side=str(data.get("side") or ""),
            market_slug=str(data.get("market_slug") or "unknown"),
            timestamp=timestamp,
            shares_normalized=_float(data.get("shares_normalized")),
            price=_float(data.get("price")),
            token_id=_str_or_none(data.get("token_id")),
            condition_id=_str_or_none(data.get("condition_id")),
            tx_hash=_str_or_none(data.get("tx_hash")),
            user=_str_or_none(data.get("user")),
        )


@dataclass(frozen=True)
class DomePage(Generic[T]):
    """One page of a paginated listing."""

    items: list[T] = field(default_factory=list)
    has_more: bool = False
