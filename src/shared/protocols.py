"""
协议定义

基于 JSON 的消息信封与各类客户端载荷的解析。

信封格式（按行分隔，每行一个 JSON 对象）：
    {"type": "<kind>", "data": {...}, "error": "<可选错误文本>"}
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class ProtocolError(ValueError):
    """Raised when a message or payload is malformed or invalid."""


def _require(condition: bool, msg: str) -> None:
    if not condition:
        logger.warning(f"ProtocolError: {msg}")
        raise ProtocolError(msg)


class Message:
    """消息信封"""

    def __init__(self, msg_type: str, data: Optional[Dict[str, Any]] = None, error: str = ""):
        self.type = msg_type
        self.data = data or {}
        self.error = error

    def to_dict(self) -> Dict[str, Any]:
        obj: Dict[str, Any] = {"type": self.type, "data": self.data}
        if self.error:
            obj["error"] = self.error
        return obj

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_json(cls, json_str: str) -> "Message":
        try:
            obj = json.loads(json_str)
        except (ValueError, RecursionError) as e:
            raise ProtocolError(f"invalid json: {e}") from e
        _require(isinstance(obj, dict), "envelope must be an object")
        _require(isinstance(obj.get("type"), str), "envelope type must be a string")
        data = obj.get("data")
        if data is None:
            data = {}
        _require(isinstance(data, dict), "envelope data must be an object")
        error = obj.get("error") or ""
        return cls(obj["type"], data, str(error))

    @classmethod
    def error_reply(cls, text: str) -> "Message":
        return cls("error", {}, text)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Message):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return f"Message(type={self.type!r}, data={self.data!r}, error={self.error!r})"


def _text(data: Dict[str, Any], key: str, required: bool = True) -> str:
    value = data.get(key)
    if value is None or value == "":
        _require(not required, f"missing field: {key}")
        return ""
    # 房间号允许客户端以数字形式发送
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    _require(isinstance(value, str), f"field {key} must be a string")
    return value


# -------------------------
# 客户端载荷
# -------------------------
@dataclass(frozen=True)
class ConnectPayload:
    player_id: str
    nickname: str

    @classmethod
    def from_data(cls, data: Dict[str, Any]) -> "ConnectPayload":
        return cls(player_id=_text(data, "playerId"), nickname=_text(data, "nickname", required=False))


@dataclass(frozen=True)
class JoinPayload:
    room_id: str
    player_id: str
    nickname: str

    @classmethod
    def from_data(cls, data: Dict[str, Any]) -> "JoinPayload":
        return cls(
            room_id=_text(data, "roomId"),
            player_id=_text(data, "playerId"),
            nickname=_text(data, "nickname", required=False),
        )


@dataclass(frozen=True)
class ActionPayload:
    """start / hit / stand / leave 共用的载荷"""

    room_id: str
    player_id: str

    @classmethod
    def from_data(cls, data: Dict[str, Any]) -> "ActionPayload":
        return cls(room_id=_text(data, "roomId"), player_id=_text(data, "playerId"))


@dataclass(frozen=True)
class ChatPayload:
    room_id: str
    player_id: str
    message: str

    @classmethod
    def from_data(cls, data: Dict[str, Any]) -> "ChatPayload":
        return cls(
            room_id=_text(data, "roomId"),
            player_id=_text(data, "playerId"),
            message=_text(data, "message", required=False),
        )


@dataclass(frozen=True)
class QueryRoomPayload:
    room_id: str

    @classmethod
    def from_data(cls, data: Dict[str, Any]) -> "QueryRoomPayload":
        return cls(room_id=_text(data, "roomId"))


__all__ = [
    "ProtocolError",
    "Message",
    "ConnectPayload",
    "JoinPayload",
    "ActionPayload",
    "ChatPayload",
    "QueryRoomPayload",
]
