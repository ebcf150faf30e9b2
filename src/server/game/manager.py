"""
房间管理器

进程内的房间/玩家目录，负责建房、删房，以及把客户端消息路由到
对应房间操作并广播结果。

加锁顺序：持有管理器锁时可以再取房间锁，反之不行。
广播先在房间锁内取连接快照，再在锁外逐个发送。
"""

from __future__ import annotations

import logging
import random
import threading
import time
from typing import Any, Callable, Dict, Optional, Tuple, Union

from src.shared.constants import (
    MSG_CHAT,
    MSG_CONNECT,
    MSG_CREATE_ROOM,
    MSG_GAME_END,
    MSG_HIT,
    MSG_JOIN,
    MSG_LEAVE,
    MSG_PLAYERS,
    MSG_QUERY_ROOM,
    MSG_ROOM_INFO,
    MSG_STAND,
    MSG_START,
    MSG_UPDATE,
    ROOM_ID_MIN,
    ROOM_ID_SPAN,
)
from src.shared.protocols import (
    ActionPayload,
    ChatPayload,
    ConnectPayload,
    JoinPayload,
    Message,
    ProtocolError,
    QueryRoomPayload,
)
from src.server.game.errors import (
    GameError,
    PlayerInOtherRoomError,
    PlayerNotFoundError,
    RoomFullError,
    RoomNotFoundError,
)
from src.server.game.room import GameRoom
from src.server.models import Deck, Player

logger = logging.getLogger(__name__)


class RoomManager:
    """房间管理器：room_id -> GameRoom，player_id -> Player"""

    def __init__(self, rng: Optional[random.Random] = None, deck_factory: Callable[[], Deck] = Deck):
        self.rooms: Dict[str, GameRoom] = {}
        self.players: Dict[str, Player] = {}
        self._rng = rng or random.Random()
        self._deck_factory = deck_factory
        self._lock = threading.Lock()

    # 目录操作
    def create_room(self) -> GameRoom:
        """创建房间；生成的房间号与现有房间冲突时重新生成"""
        with self._lock:
            room_id = self._generate_room_id()
            while room_id in self.rooms:
                logger.debug(f"房间号冲突，重新生成: {room_id}")
                room_id = self._generate_room_id()
            room = GameRoom(room_id, deck_factory=self._deck_factory)
            self.rooms[room_id] = room
        logger.info(f"创建房间: {room_id}")
        return room

    def _generate_room_id(self) -> str:
        return str(ROOM_ID_MIN + self._rng.randrange(ROOM_ID_SPAN))

    def get_room(self, room_id: str) -> Optional[GameRoom]:
        with self._lock:
            return self.rooms.get(room_id)

    def get_player(self, player_id: str) -> Optional[Player]:
        with self._lock:
            return self.players.get(player_id)

    def room_info(self, room_id: str) -> Dict[str, Any]:
        room = self._require_room(room_id)
        return room.info()

    def connect_player(self, player_id: str, nickname: str, conn: Any) -> Player:
        """登记玩家身份；已存在则更新昵称并绑定新连接"""
        with self._lock:
            player = self.players.get(player_id)
            if player is None:
                player = Player(player_id, nickname or player_id)
                self.players[player_id] = player
                room = None
            else:
                room = self.rooms.get(player.room_id) if player.room_id else None

        if room is not None and room.has_player(player_id):
            room.rebind_player(player_id, conn, nickname)
        else:
            if nickname:
                player.nickname = nickname
            player.attach(conn)
        return player

    def join_room(self, room_id: str, player_id: str, nickname: str) -> Tuple[GameRoom, Player]:
        """加入房间：复用未入座的玩家记录，否则新建"""
        with self._lock:
            room = self.rooms.get(room_id)
            if room is None:
                raise RoomNotFoundError()

            player = self.players.get(player_id)
            if player is not None and player.room_id not in (None, room_id):
                raise PlayerInOtherRoomError()
            if player is None:
                player = Player(player_id, nickname or player_id)
            elif nickname and player.room_id is None:
                player.nickname = nickname

            if not room.add_player(player):
                raise RoomFullError()
            self.players[player_id] = player

        logger.info(f"玩家 {player_id} 加入房间 {room_id}")
        return room, player

    def leave_room(self, room_id: str, player_id: str) -> Optional[GameRoom]:
        """离开房间（幂等）。返回仍然存在的房间，房间被删除或不存在时返回 None"""
        with self._lock:
            room = self.rooms.get(room_id)
            if room is None:
                return None

            removed = room.remove_player(player_id)
            if removed is None:
                return room
            if self.players.get(player_id) is removed:
                del self.players[player_id]

            if room.player_count() == 0:
                del self.rooms[room_id]
                logger.info(f"房间 {room_id} 已空，删除")
                room = None

        logger.info(f"玩家 {player_id} 离开房间 {room_id}")
        return room

    def on_disconnect(self, conn: Any) -> None:
        """连接断开：解除连接绑定，玩家保留座位；未入座的玩家记录直接删除"""
        player_id = getattr(conn, "player_id", None)
        if not player_id:
            return
        player = self.get_player(player_id)
        if player is None:
            return
        room = self.get_room(player.room_id) if player.room_id else None
        if room is not None:
            if room.detach_connection(player_id, conn):
                logger.info(f"玩家 {player_id} 断开连接，保留座位")
            return

        with self._lock:
            # 期间可能已入座或被新连接接管
            if self.players.get(player_id) is player and player.room_id is None and player.detach(conn):
                del self.players[player_id]
                logger.info(f"玩家 {player_id} 断开连接，未入座，删除记录")

    def _require_room(self, room_id: str) -> GameRoom:
        room = self.get_room(room_id)
        if room is None:
            raise RoomNotFoundError()
        return room

    # 消息处理
    def handle_raw(self, conn: Any, raw: Union[bytes, str]) -> None:
        """原始一行 -> Message 并路由"""
        try:
            text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
            msg = Message.from_json(text)
        except ProtocolError:
            conn.send(Message.error_reply("无效的数据格式"))
            return
        self.handle_message(conn, msg)

    def handle_message(self, conn: Any, msg: Message) -> None:
        """根据消息类型路由到对应处理函数，失败只回复发送方"""
        t = msg.type
        data = msg.data
        logger.debug(f"收到消息: type={t}, from={getattr(conn, 'player_id', None)}")

        try:
            if t == MSG_CONNECT:
                self._handle_connect(conn, ConnectPayload.from_data(data))
            elif t == MSG_JOIN:
                self._handle_join(conn, JoinPayload.from_data(data))
            elif t == MSG_LEAVE:
                self._handle_leave(conn, ActionPayload.from_data(data))
            elif t == MSG_START:
                self._handle_start(conn, ActionPayload.from_data(data))
            elif t == MSG_HIT:
                self._handle_hit(conn, ActionPayload.from_data(data))
            elif t == MSG_STAND:
                self._handle_stand(conn, ActionPayload.from_data(data))
            elif t == MSG_CHAT:
                self._handle_chat(conn, ChatPayload.from_data(data))
            elif t == MSG_CREATE_ROOM:
                self._handle_create_room(conn)
            elif t == MSG_QUERY_ROOM:
                self._handle_query_room(conn, QueryRoomPayload.from_data(data))
            else:
                conn.send(Message.error_reply("未知消息类型"))
        except ProtocolError:
            conn.send(Message.error_reply("无效的数据格式"))
        except GameError as e:
            logger.debug(f"操作被拒绝: type={t}, reason={e}")
            conn.send(Message.error_reply(str(e)))
        except Exception:
            logger.exception(f"处理消息出错: type={t}")
            conn.send(Message.error_reply("服务器内部错误"))

    def _handle_connect(self, conn: Any, payload: ConnectPayload) -> None:
        player = self.connect_player(payload.player_id, payload.nickname, conn)
        conn.player_id = player.id
        conn.send(Message(MSG_CONNECT, {"playerId": player.id, "nickname": player.nickname}))

    def _handle_join(self, conn: Any, payload: JoinPayload) -> None:
        room = self._require_room(payload.room_id)

        if room.has_player(payload.player_id):
            # 已在房间中（刷新页面/重连），只更新连接
            player = room.rebind_player(payload.player_id, conn, payload.nickname)
            with self._lock:
                self.players[player.id] = player
            logger.info(f"玩家 {player.id} 重连房间 {room.room_id}")
        else:
            room, player = self.join_room(payload.room_id, payload.player_id, payload.nickname)
            room.rebind_player(player.id, conn, payload.nickname)

        conn.player_id = player.id
        conn.send(Message(MSG_ROOM_INFO, {"roomId": room.room_id, "status": room.get_status()}))
        self.broadcast_players(room)

    def _handle_leave(self, conn: Any, payload: ActionPayload) -> None:
        room = self.leave_room(payload.room_id, payload.player_id)
        conn.send(Message(MSG_LEAVE, {"roomId": payload.room_id, "playerId": payload.player_id}))
        if room is None:
            return
        self.broadcast_players(room)
        # 最后一个仍在操作的玩家离开，本局随之结束
        if room.check_game_end():
            self._finish_hand(room)

    def _handle_start(self, conn: Any, payload: ActionPayload) -> None:
        room = self._require_room(payload.room_id)
        if not room.has_player(payload.player_id):
            raise PlayerNotFoundError("玩家不在房间中")

        room.start_game()
        self.broadcast(room, Message(MSG_START, {"roomId": room.room_id}))
        self.broadcast_players(room)
        # 所有人开局即 21 点时没有人需要操作
        if room.check_game_end():
            self._finish_hand(room)

    def _handle_hit(self, conn: Any, payload: ActionPayload) -> None:
        room = self._require_room(payload.room_id)
        room.player_hit(payload.player_id)
        self._after_action(room, payload.player_id)

    def _handle_stand(self, conn: Any, payload: ActionPayload) -> None:
        room = self._require_room(payload.room_id)
        room.player_stand(payload.player_id)
        self._after_action(room, payload.player_id)

    def _after_action(self, room: GameRoom, player_id: str) -> None:
        self.broadcast_update(room, player_id)
        if room.check_game_end():
            self._finish_hand(room)
        else:
            self.broadcast_players(room)

    def _handle_chat(self, conn: Any, payload: ChatPayload) -> None:
        room = self._require_room(payload.room_id)
        player = room.get_player(payload.player_id)
        if player is None:
            raise PlayerNotFoundError()
        if not payload.message:
            return
        self.broadcast(room, Message(MSG_CHAT, {
            "playerId": player.id,
            "nickname": player.nickname,
            "message": payload.message,
            "time": time.strftime("%H:%M:%S"),
        }))

    def _handle_create_room(self, conn: Any) -> None:
        room = self.create_room()
        conn.send(Message(MSG_CREATE_ROOM, {"roomId": room.room_id}))

    def _handle_query_room(self, conn: Any, payload: QueryRoomPayload) -> None:
        info = self.room_info(payload.room_id)
        conn.send(Message(MSG_ROOM_INFO, {
            "roomId": info["roomId"],
            "playerCount": info["playerCount"],
            "status": info["status"],
        }))

    def _finish_hand(self, room: GameRoom) -> None:
        outcome = room.settle()
        if outcome is None:
            return
        results, winner_id = outcome
        logger.info(f"房间 {room.room_id} 结算完成，获胜者: {winner_id}")
        self.broadcast(room, Message(MSG_GAME_END, {
            "roomId": room.room_id,
            "results": results,
            "winnerId": winner_id,
        }))

    # 发送/广播
    def broadcast(self, room: GameRoom, msg: Message) -> None:
        """向房间内所有在线玩家广播同一条消息"""
        for _, conn in room.connections():
            conn.send(msg)

    def broadcast_players(self, room: GameRoom) -> None:
        """广播玩家列表，每位接收者只能看到自己的底牌"""
        for player_id, conn in room.connections():
            conn.send(Message(MSG_PLAYERS, {"players": room.players_view(player_id)}))

    def broadcast_update(self, room: GameRoom, actor_id: str) -> None:
        """广播单个玩家的视图，除本人外隐藏底牌"""
        for player_id, conn in room.connections():
            view = room.player_view(actor_id, hide_cards=(player_id != actor_id))
            if view is not None:
                conn.send(Message(MSG_UPDATE, view))


__all__ = ["RoomManager"]
