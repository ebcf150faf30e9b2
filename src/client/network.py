"""
简单的客户端网络封装：负责连接服务器、收发消息并提供事件队列。
"""
from __future__ import annotations

import socket
import threading
import time
import uuid
from queue import Empty, SimpleQueue
from typing import List, Optional

from src.shared.constants import (
    BUFFER_SIZE,
    DEFAULT_HOST,
    DEFAULT_PORT,
    MSG_CHAT,
    MSG_CONNECT,
    MSG_CREATE_ROOM,
    MSG_HIT,
    MSG_JOIN,
    MSG_LEAVE,
    MSG_QUERY_ROOM,
    MSG_STAND,
    MSG_START,
)
from src.shared.protocols import Message, ProtocolError


class NetworkClient:
    """线程驱动的轻量客户端，不带界面。"""

    def __init__(self, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT) -> None:
        self.host = host
        self.port = port
        self.sock: Optional[socket.socket] = None
        self._recv_thread: Optional[threading.Thread] = None
        self._running = threading.Event()
        self._buf = bytearray()
        self.events: SimpleQueue[Message] = SimpleQueue()
        self.player_id: Optional[str] = None
        self.nickname: Optional[str] = None
        self.room_id: Optional[str] = None

    @property
    def connected(self) -> bool:
        return bool(self.sock) and self._running.is_set()

    def connect(self, nickname: str, player_id: Optional[str] = None) -> bool:
        """连接服务器并登记玩家身份。"""
        if self.connected:
            return True
        self.player_id = player_id or str(uuid.uuid4())
        self.nickname = nickname or "玩家"
        try:
            self.sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            # 设置连接超时
            self.sock.settimeout(5.0)
            self.sock.connect((self.host, self.port))
            # 连接成功后取消超时
            self.sock.settimeout(None)
            self._running.set()
            self._recv_thread = threading.Thread(target=self._recv_loop, daemon=True)
            self._recv_thread.start()
            self._send(Message(MSG_CONNECT, {"playerId": self.player_id, "nickname": self.nickname}))
            return True
        except OSError:
            self.close()
            return False

    def create_room(self) -> None:
        self._send(Message(MSG_CREATE_ROOM, {}))

    def query_room(self, room_id: str) -> None:
        self._send(Message(MSG_QUERY_ROOM, {"roomId": room_id}))

    def join_room(self, room_id: str) -> None:
        self.room_id = room_id
        self._send(Message(MSG_JOIN, {"roomId": room_id, "playerId": self.player_id, "nickname": self.nickname}))

    def leave_room(self) -> None:
        self._send(Message(MSG_LEAVE, self._seat()))

    def start_game(self) -> None:
        self._send(Message(MSG_START, self._seat()))

    def hit(self) -> None:
        self._send(Message(MSG_HIT, self._seat()))

    def stand(self) -> None:
        self._send(Message(MSG_STAND, self._seat()))

    def send_chat(self, text: str) -> None:
        if not text:
            return
        if not self.connected:
            return
        self._send(Message(MSG_CHAT, dict(self._seat(), message=text)))

    def drain_events(self) -> List[Message]:
        items: List[Message] = []
        while True:
            try:
                items.append(self.events.get_nowait())
            except Empty:
                break
        return items

    def wait_for(self, msg_type: str, timeout: float = 5.0) -> Optional[Message]:
        """等待指定类型的消息，跳过其间的其他消息；超时返回 None"""
        deadline = time.monotonic() + timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return None
            try:
                msg = self.events.get(timeout=remaining)
            except Empty:
                return None
            if msg.type == msg_type:
                return msg

    def close(self) -> None:
        self._running.clear()
        try:
            if self.sock:
                try:
                    self.sock.shutdown(socket.SHUT_RDWR)
                except OSError:
                    pass
                self.sock.close()
        finally:
            self.sock = None

    # 内部方法
    def _seat(self) -> dict:
        return {"roomId": self.room_id, "playerId": self.player_id}

    def _send(self, msg: Message) -> None:
        if not self.sock:
            return
        try:
            payload = msg.to_json() + "\n"
            self.sock.sendall(payload.encode("utf-8"))
        except OSError:
            self.close()

    def _recv_loop(self) -> None:
        try:
            while self._running.is_set() and self.sock:
                data = self.sock.recv(BUFFER_SIZE)
                if not data:
                    break
                self._buf.extend(data)
                while True:
                    try:
                        idx = self._buf.index(ord("\n"))
                    except ValueError:
                        break
                    raw = self._buf[:idx]
                    del self._buf[: idx + 1]
                    self._handle_raw(raw)
        except OSError:
            pass
        finally:
            self.close()

    def _handle_raw(self, raw: bytes) -> None:
        try:
            text = raw.decode("utf-8", errors="replace")
            msg = Message.from_json(text)
            self.events.put(msg)
        except ProtocolError:
            # 忽略无法解析的消息
            pass


__all__ = ["NetworkClient"]
