"""
数据模型

扑克牌/牌组/计分规则与玩家记录，均为纯内存对象，不带锁。
"""

from .cards import (
    Card,
    Deck,
    DeckExhaustedError,
    calculate_hand_value,
    full_deck,
    is_blackjack,
    is_bust,
)
from .player import Player

__all__ = [
    "Card",
    "Deck",
    "DeckExhaustedError",
    "Player",
    "calculate_hand_value",
    "full_deck",
    "is_blackjack",
    "is_bust",
]
