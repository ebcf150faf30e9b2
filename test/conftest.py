"""
Pytest configuration and shared fixtures for the blackjack room server.
"""

import os
import sys

import pytest

# Add project root to path so that ``import src`` works for testing
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from src.server.game import GameRoom, RoomManager  # noqa: E402
from src.server.models import Card, Deck, Player, full_deck  # noqa: E402


class FakeConnection:
    """Stands in for ClientConnection: records every message sent to it."""

    def __init__(self, name="conn"):
        self.name = name
        self.player_id = None
        self.messages = []
        self.closed = False

    def send(self, msg):
        if not self.closed:
            self.messages.append(msg)

    def close(self):
        self.closed = True

    def of_type(self, msg_type):
        return [m for m in self.messages if m.type == msg_type]

    def last(self, msg_type=None):
        msgs = self.of_type(msg_type) if msg_type else self.messages
        return msgs[-1] if msgs else None

    def clear(self):
        self.messages = []

    def __repr__(self):
        return f"FakeConnection({self.name})"


def _card(token):
    suits = {"c": "club", "d": "diamond", "h": "heart", "s": "spade"}
    ranks = {"A": 1, "J": 11, "Q": 12, "K": 13}
    text = token[1:]
    return Card(suits[token[0]], ranks.get(text) or int(text))


def _stacked_deck(*tokens):
    top = [_card(t) for t in tokens]
    rest = [c for c in full_deck() if c not in top]
    # Deck.deal pops from the end, so the first token goes last
    return Deck(cards=rest + list(reversed(top)))


@pytest.fixture
def card():
    """Build a card from a short token such as 'hA', 's10', 'cK', 'd7'."""
    return _card


@pytest.fixture
def stacked_deck():
    """A full 52-card deck whose first deals are the given tokens, in order."""
    return _stacked_deck


@pytest.fixture
def deck_factory():
    def _factory(*tokens):
        return lambda: _stacked_deck(*tokens)

    return _factory


@pytest.fixture
def fake_conn():
    return FakeConnection


@pytest.fixture
def room():
    return GameRoom("12345")


@pytest.fixture
def manager():
    return RoomManager()


@pytest.fixture
def two_player_room():
    """Room with players A and B seated in that order, not yet started."""

    def _make(*tokens):
        if tokens:
            r = GameRoom("12345", deck_factory=lambda: _stacked_deck(*tokens))
        else:
            r = GameRoom("12345")
        a = Player("A", "Alice")
        b = Player("B", "Bob")
        assert r.add_player(a)
        assert r.add_player(b)
        return r, a, b

    return _make
