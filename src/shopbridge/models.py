"""Data models and strict parsing for page descriptors and channel messages."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

from shopbridge.constants import (
    IDENTITY_SEPARATOR,
    STATUS_COMPLETE,
    STATUS_ERROR,
    STATUS_PROGRESS,
    TERMINAL_STATUSES,
)


@dataclass(frozen=True)
class PageIdentity:
    title: str
    url: str

    @property
    def fingerprint(self) -> str:
        return f"{self.title}{IDENTITY_SEPARATOR}{self.url}"


@dataclass(frozen=True)
class ControlSnapshot:
    control_id: str
    title: str
    url: str

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "ControlSnapshot":
        return cls(
            control_id=_expect_str(payload, "control_id"),
            title=_expect_str(payload, "title"),
            url=_expect_str(payload, "url"),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Candidate:
    ref: int
    tag: str
    text: str
    width: float = 0.0
    height: float = 0.0
    display: str = ""
    visibility: str = ""
    opacity: str = "1"
    in_landmark: bool = False
    processed: bool = False
    class_name: str = ""
    parent_class: str = ""
    parent_display: str = ""
    parent_flex_direction: str = ""
    has_grandparent: bool = False

    @property
    def is_heading(self) -> bool:
        return self.tag.lower() == "h1"

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Candidate":
        ref = payload.get("ref")
        if not isinstance(ref, int) or isinstance(ref, bool):
            raise ValueError("'ref' must be an integer")
        return cls(
            ref=ref,
            tag=_expect_str(payload, "tag"),
            text=str(payload.get("text") or ""),
            width=_expect_number(payload, "width"),
            height=_expect_number(payload, "height"),
            display=str(payload.get("display") or ""),
            visibility=str(payload.get("visibility") or ""),
            opacity=str(payload.get("opacity") if payload.get("opacity") is not None else "1"),
            in_landmark=bool(payload.get("in_landmark", False)),
            processed=bool(payload.get("processed", False)),
            class_name=str(payload.get("class_name") or ""),
            parent_class=str(payload.get("parent_class") or ""),
            parent_display=str(payload.get("parent_display") or ""),
            parent_flex_direction=str(payload.get("parent_flex_direction") or ""),
            has_grandparent=bool(payload.get("has_grandparent", False)),
        )


@dataclass(frozen=True)
class ChannelMessage:
    status: str
    message: str = ""
    data: Any = None
    error: str = ""

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "ChannelMessage":
        status = _expect_str(payload, "status")
        if status == STATUS_PROGRESS:
            return cls(status=status, message=str(payload.get("message") or ""))
        if status == STATUS_COMPLETE:
            return cls(status=status, data=payload.get("data"))
        if status == STATUS_ERROR:
            return cls(status=status, error=str(payload.get("error") or ""))
        raise ValueError(f"Unknown status '{status}'")


@dataclass(frozen=True)
class ControlState:
    kind: str = "default"
    message: str = ""

    @property
    def is_default(self) -> bool:
        return self.kind == "default"


def _expect_str(payload: dict[str, Any], key: str) -> str:
    if key not in payload:
        raise ValueError(f"'{key}' is required")
    value = payload[key]
    if not isinstance(value, str):
        raise ValueError(f"'{key}' must be a string")
    return value


def _expect_number(payload: dict[str, Any], key: str) -> float:
    value = payload.get(key, 0)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"'{key}' must be a number")
    return float(value)
