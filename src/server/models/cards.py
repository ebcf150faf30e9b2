"""
扑克牌、牌组与手牌计分（21 点规则）。
"""

import random
from dataclasses import dataclass
from typing import Iterable, List, Optional

from src.shared.constants import BLACKJACK, CARD_PREFIX, RANKS, SUITS

ACE = 1
JACK = 11
QUEEN = 12
KING = 13

_RANK_TEXT = {ACE: "A", JACK: "J", QUEEN: "Q", KING: "K"}


class DeckExhaustedError(RuntimeError):
    """从空牌组发牌。房间人数上限保证正常对局中不会出现。"""


@dataclass(frozen=True)
class Card:
    suit: str  # club / diamond / heart / spade
    rank: int  # 1..13

    def value(self) -> int:
        """J/Q/K 记 10，其余按点数（A 为 1）"""
        if self.rank in (JACK, QUEEN, KING):
            return 10
        return self.rank

    def __str__(self) -> str:
        # 客户端用作牌面 CSS 类名，例如 pk-heartA、pk-spade10
        return CARD_PREFIX + self.suit + _RANK_TEXT.get(self.rank, str(self.rank))


def full_deck() -> List[Card]:
    return [Card(suit, rank) for suit in SUITS for rank in RANKS]


class Deck:
    """一副 52 张的牌组，归单个房间在一局内独占。

    不带锁：只能在持有房间锁时调用 deal()。
    传入 cards 时按给定顺序使用（不洗牌），从末尾开始发牌。
    """

    def __init__(self, cards: Optional[Iterable[Card]] = None, rng: Optional[random.Random] = None):
        if cards is None:
            self._cards = full_deck()
            self.shuffle(rng)
        else:
            self._cards = list(cards)

    def shuffle(self, rng: Optional[random.Random] = None) -> None:
        # random.shuffle 即 Fisher-Yates
        (rng or random).shuffle(self._cards)

    def deal(self) -> Card:
        if not self._cards:
            raise DeckExhaustedError("deck exhausted")
        return self._cards.pop()

    def remaining(self) -> int:
        return len(self._cards)

    def __len__(self) -> int:
        return len(self._cards)


def calculate_hand_value(cards: Iterable[Card]) -> int:
    """计算手牌总点数。

    A 先按 11 计；总点数超过 21 时逐张把 A 降为 1，直到不超过 21
    或没有可降的 A。每次都按整手牌重新计算。
    """
    total = 0
    aces = 0
    for card in cards:
        total += card.value()
        if card.rank == ACE:
            total += 10
            aces += 1

    while total > BLACKJACK and aces > 0:
        total -= 10
        aces -= 1

    return total


def is_bust(cards: List[Card]) -> bool:
    return calculate_hand_value(cards) > BLACKJACK


def is_blackjack(cards: List[Card]) -> bool:
    """首两张牌即为 21 点"""
    return len(cards) == 2 and calculate_hand_value(cards) == BLACKJACK
