import logging
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

from src.shared.constants import (
    INITIAL_CARDS,
    MAX_PLAYERS,
    MIN_PLAYERS,
    PLAYER_ACTING,
    PLAYER_STOOD,
    ROOM_ENDED,
    ROOM_PLAYING,
    ROOM_WAITING,
)
from src.server.game.errors import (
    ActionNotAllowedError,
    InvalidPhaseError,
    NotEnoughPlayersError,
    PlayerNotFoundError,
)
from src.server.models import Card, Deck, Player, is_blackjack

logger = logging.getLogger(__name__)


def determine_winner(players: List[Player]) -> Optional[Player]:
    """结算：未爆牌且点数严格最高者获胜。

    点数相同取入座最早者（players 按入座顺序传入）；全部爆牌则无人获胜。
    中途入座、本局没有发到牌的玩家不参与结算。
    """
    winner: Optional[Player] = None
    best = 0
    for player in players:
        if player.status not in (PLAYER_STOOD, PLAYER_ACTING) or not player.cards:
            continue
        value = player.hand_value
        if value > best:
            winner, best = player, value
    return winner


class GameRoom:
    """
    游戏房间类，管理玩家、牌组和牌局状态。

    除 room_id / created_at 外的所有字段都由 _lock 保护，
    对外只返回快照，不暴露内部容器。
    """

    def __init__(self, room_id: str, deck_factory: Callable[[], Deck] = Deck):
        self.room_id = room_id
        self.created_at = time.time()
        self.players: Dict[str, Player] = {}  # player_id -> Player，插入顺序即入座顺序
        # waiting: 等待玩家
        # playing: 牌局进行中（此时才有牌组）
        # ended: 本局结束，可再次开始
        self.status = ROOM_WAITING
        self.deck: Optional[Deck] = None
        self._deck_factory = deck_factory
        self._settled = False  # 本局是否已结算
        self._lock = threading.Lock()

    # 玩家管理
    def add_player(self, player: Player) -> bool:
        """添加玩家到房间；已在房间中或房间已满时返回 False"""
        with self._lock:
            if player.id in self.players:
                return False
            if len(self.players) >= MAX_PLAYERS:
                return False
            player.room_id = self.room_id
            self.players[player.id] = player
            return True

    def remove_player(self, player_id: str) -> Optional[Player]:
        """从房间移除玩家；房间空了则本局结束"""
        with self._lock:
            player = self.players.pop(player_id, None)
            if player is None:
                return None
            player.room_id = None
            if not self.players:
                self.status = ROOM_ENDED
                self.deck = None
            return player

    def get_player(self, player_id: str) -> Optional[Player]:
        with self._lock:
            return self.players.get(player_id)

    def has_player(self, player_id: str) -> bool:
        with self._lock:
            return player_id in self.players

    def player_count(self) -> int:
        with self._lock:
            return len(self.players)

    def get_status(self) -> str:
        with self._lock:
            return self.status

    def rebind_player(self, player_id: str, conn: Any, nickname: str) -> Player:
        """断线重连：原座位不变，只替换连接和昵称"""
        with self._lock:
            player = self.players.get(player_id)
            if player is None:
                raise PlayerNotFoundError()
            player.attach(conn)
            if nickname:
                player.nickname = nickname
            return player

    def detach_connection(self, player_id: str, conn: Any) -> bool:
        with self._lock:
            player = self.players.get(player_id)
            return player.detach(conn) if player else False

    # 牌局
    def start_game(self) -> None:
        """开始新的一局：重置玩家、新建牌组、按轮发两张牌"""
        with self._lock:
            if self.status == ROOM_PLAYING:
                raise InvalidPhaseError("游戏已在进行中")
            if len(self.players) < MIN_PLAYERS:
                raise NotEnoughPlayersError()

            seated = list(self.players.values())
            for player in seated:
                player.reset()
                player.status = PLAYER_ACTING

            self.deck = self._deck_factory()

            # 每轮给每位玩家发一张，共两轮
            for _ in range(INITIAL_CARDS):
                for player in seated:
                    player.add_card(self.deck.deal())

            for player in seated:
                if is_blackjack(player.cards):
                    player.stand()

            self.status = ROOM_PLAYING
            self._settled = False
            logger.info(f"房间 {self.room_id} 开局，玩家数 {len(seated)}")

    def player_hit(self, player_id: str) -> Card:
        """玩家要牌，返回发出的牌"""
        with self._lock:
            player = self._acting_player(player_id)
            if not player.can_act():
                raise ActionNotAllowedError("当前不能操作")
            card = self.deck.deal()
            player.add_card(card)
            return card

    def player_stand(self, player_id: str) -> None:
        with self._lock:
            player = self._acting_player(player_id)
            if player.status != PLAYER_ACTING:
                raise ActionNotAllowedError("当前不能停牌")
            player.stand()

    def _acting_player(self, player_id: str) -> Player:
        # 调用方已持有锁
        if self.status != ROOM_PLAYING:
            raise InvalidPhaseError("游戏未进行中")
        player = self.players.get(player_id)
        if player is None:
            raise PlayerNotFoundError()
        return player

    def check_game_end(self) -> bool:
        """每次要牌/停牌后由调用方检查：没有玩家仍在操作则本局结束"""
        with self._lock:
            if self.status != ROOM_PLAYING:
                return True
            if any(p.status == PLAYER_ACTING for p in self.players.values()):
                return False
            self.status = ROOM_ENDED
            self.deck = None
            logger.info(f"房间 {self.room_id} 本局结束")
            return True

    def settle(self) -> Optional[Tuple[List[Dict[str, Any]], Optional[str]]]:
        """结算本局，返回 (每位玩家的结果, 获胜者 id)。

        每局只结算一次：本局尚未结束或已经结算过时返回 None。
        """
        with self._lock:
            if self.status != ROOM_ENDED or self._settled:
                return None
            self._settled = True
            seated = list(self.players.values())
            winner = determine_winner(seated)
            winner_id = winner.id if winner else None
            results = [
                {
                    "playerId": p.id,
                    "nickname": p.nickname,
                    "score": p.hand_value,
                    "status": p.status,
                    "statusText": p.status_text,
                    "cards": [str(c) for c in p.cards],
                    "isWinner": p.id == winner_id,
                }
                for p in seated
            ]
            return results, winner_id

    # 视图
    def info(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "roomId": self.room_id,
                "playerCount": len(self.players),
                "status": self.status,
                "createdAt": self.created_at,
            }

    def connections(self) -> List[Tuple[str, Any]]:
        """当前在线玩家的 (player_id, conn) 快照，用于在锁外广播"""
        with self._lock:
            return [(pid, p.conn) for pid, p in self.players.items() if p.conn is not None]

    def players_view(self, viewer_id: Optional[str]) -> List[Dict[str, Any]]:
        """玩家列表：只有 viewer 自己的牌可见"""
        with self._lock:
            return [p.to_dict(hide_cards=(pid != viewer_id)) for pid, p in self.players.items()]

    def player_view(self, player_id: str, hide_cards: bool) -> Optional[Dict[str, Any]]:
        with self._lock:
            player = self.players.get(player_id)
            return player.to_dict(hide_cards) if player else None
