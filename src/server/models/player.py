"""
玩家数据模型

玩家记录的生命周期长于任何一条连接：断线重连只替换连接，不重置牌局状态。
"""

import time
from typing import Any, Dict, List, Optional

from src.shared.constants import (
    BLACKJACK,
    HIDDEN_CARD,
    PLAYER_ACTING,
    PLAYER_BUST,
    PLAYER_STATUS_COLOR,
    PLAYER_STATUS_TEXT,
    PLAYER_STOOD,
    PLAYER_WAITING,
)
from src.server.models.cards import Card, calculate_hand_value


class Player:
    """玩家：身份、手牌、状态与当前连接"""

    def __init__(self, player_id: str, nickname: str):
        self.id = player_id
        self.nickname = nickname
        self.cards: List[Card] = []
        self.status = PLAYER_WAITING
        self.room_id: Optional[str] = None
        self.conn: Optional[Any] = None  # 当前连接，断线期间为 None
        self.last_active = time.time()

    @property
    def hand_value(self) -> int:
        return calculate_hand_value(self.cards)

    def reset(self) -> None:
        """新一局：清空手牌，回到等待状态"""
        self.cards = []
        self.status = PLAYER_WAITING

    def add_card(self, card: Card) -> None:
        """加一张牌，超过 21 点自动爆牌"""
        self.cards.append(card)
        if self.hand_value > BLACKJACK:
            self.status = PLAYER_BUST

    def stand(self) -> None:
        self.status = PLAYER_STOOD

    def can_act(self) -> bool:
        # 要牌到正好 21 点时状态仍为 acting，但不能再操作
        return self.status == PLAYER_ACTING and self.hand_value < BLACKJACK

    def attach(self, conn: Any) -> None:
        self.conn = conn
        self.last_active = time.time()

    def detach(self, conn: Any) -> bool:
        """仅当 conn 仍是当前连接时解除绑定（重连后旧连接关闭不影响新连接）"""
        if self.conn is conn:
            self.conn = None
            return True
        return False

    @property
    def status_text(self) -> str:
        return PLAYER_STATUS_TEXT.get(self.status, "未知")

    @property
    def status_color(self) -> str:
        return PLAYER_STATUS_COLOR.get(self.status, "gray")

    def to_dict(self, hide_cards: bool = False) -> Dict[str, Any]:
        """转换为客户端视图。

        Args:
            hide_cards: 为 True 且手牌多于一张时，只显示第一张，其余替换为
                HIDDEN_CARD，同时隐藏总点数
        """
        cards = [str(card) for card in self.cards]
        hand_value: Optional[int] = self.hand_value
        if hide_cards and len(cards) > 1:
            cards = cards[:1] + [HIDDEN_CARD] * (len(cards) - 1)
            hand_value = None

        return {
            "id": self.id,
            "nickname": self.nickname,
            "cards": cards,
            "cardCount": len(self.cards),
            "handValue": hand_value,
            "status": self.status,
            "statusText": self.status_text,
            "statusColor": self.status_color,
        }

    def __repr__(self) -> str:
        return f"Player(id={self.id!r}, status={self.status!r}, cards={[str(c) for c in self.cards]})"
