"""
Tests for the room state machine, dealing order and settlement.
"""

import threading

import pytest

from src.server.game import GameRoom, determine_winner
from src.server.game.errors import (
    ActionNotAllowedError,
    InvalidPhaseError,
    NotEnoughPlayersError,
    PlayerNotFoundError,
)
from src.server.models import Player


def test_new_room_is_waiting_without_deck(room):
    assert room.status == "waiting"
    assert room.deck is None
    assert room.player_count() == 0


def test_add_same_player_twice_is_rejected(room):
    p = Player("p1", "Alice")
    assert room.add_player(p) is True
    assert room.add_player(Player("p1", "Alice again")) is False
    assert room.player_count() == 1
    assert p.room_id == "12345"


def test_seventh_player_is_rejected(room):
    for i in range(6):
        assert room.add_player(Player(f"p{i}", f"P{i}"))
    assert room.add_player(Player("p6", "P6")) is False
    assert room.player_count() == 6


def test_start_empty_room_fails(room):
    with pytest.raises(NotEnoughPlayersError):
        room.start_game()
    assert room.status == "waiting"
    assert room.deck is None


def test_start_twice_fails(two_player_room):
    r, a, b = two_player_room()
    r.start_game()
    cards_before = list(a.cards)
    with pytest.raises(InvalidPhaseError):
        r.start_game()
    assert a.cards == cards_before


def test_opening_deal_goes_round_by_slot(two_player_room, card):
    r, a, b = two_player_room("h2", "h3", "h4", "h5")
    r.start_game()

    assert a.cards == [card("h2"), card("h4")]
    assert b.cards == [card("h3"), card("h5")]
    assert r.deck.remaining() == 48
    assert r.status == "playing"
    assert a.status == b.status == "acting"


def test_opening_blackjack_stands_automatically(two_player_room):
    r, a, b = two_player_room("hA", "h3", "sK", "h5")
    r.start_game()
    assert a.status == "stood"
    assert a.hand_value == 21
    assert b.status == "acting"
    with pytest.raises(ActionNotAllowedError):
        r.player_hit("A")


def test_start_resets_previous_hand(two_player_room):
    r, a, b = two_player_room("h9", "h3", "s9", "h5", "c9")
    r.start_game()
    r.player_hit("A")  # 9 + 9 + 9 = 27, bust
    assert a.status == "bust"
    r.player_stand("B")
    assert r.check_game_end()

    r.start_game()
    assert len(a.cards) == 2
    assert a.status == "acting"
    assert r.status == "playing"


def test_deck_exists_only_while_playing(two_player_room):
    r, a, b = two_player_room("h2", "h3", "h4", "h5")
    assert r.deck is None
    r.start_game()
    assert r.deck is not None
    r.player_stand("A")
    r.player_stand("B")
    assert r.check_game_end()
    assert r.status == "ended"
    assert r.deck is None


def test_hit_deals_one_card(two_player_room, card):
    r, a, b = two_player_room("h2", "h3", "h4", "h5", "c6")
    r.start_game()
    dealt = r.player_hit("A")
    assert dealt == card("c6")
    assert a.cards[-1] == card("c6")
    assert len(b.cards) == 2


def test_hit_requires_playing_room(two_player_room):
    r, a, b = two_player_room()
    with pytest.raises(InvalidPhaseError):
        r.player_hit("A")
    assert a.cards == []


def test_hit_unknown_player(two_player_room):
    r, a, b = two_player_room()
    r.start_game()
    with pytest.raises(PlayerNotFoundError):
        r.player_hit("nobody")


def test_hit_after_bust_fails_without_changing_hand(two_player_room):
    r, a, b = two_player_room("hK", "h3", "sQ", "h5", "c5")
    r.start_game()
    r.player_hit("A")
    assert a.status == "bust"
    hand = list(a.cards)
    with pytest.raises(ActionNotAllowedError):
        r.player_hit("A")
    assert a.cards == hand


def test_hit_after_stand_fails_without_changing_hand(two_player_room):
    r, a, b = two_player_room("h2", "h3", "h4", "h5")
    r.start_game()
    r.player_stand("A")
    hand = list(a.cards)
    with pytest.raises(ActionNotAllowedError):
        r.player_hit("A")
    assert a.cards == hand


def test_hit_to_exactly_21_blocks_more_hits_but_allows_stand(two_player_room):
    r, a, b = two_player_room("h5", "h3", "h6", "h4", "cK")
    r.start_game()
    r.player_hit("A")
    assert a.hand_value == 21
    assert a.status == "acting"
    with pytest.raises(ActionNotAllowedError):
        r.player_hit("A")
    assert r.check_game_end() is False
    r.player_stand("A")
    assert a.status == "stood"


def test_stand_twice_fails(two_player_room):
    r, a, b = two_player_room("h2", "h3", "h4", "h5")
    r.start_game()
    r.player_stand("A")
    with pytest.raises(ActionNotAllowedError):
        r.player_stand("A")


def test_stand_requires_playing_room(two_player_room):
    r, a, b = two_player_room()
    with pytest.raises(InvalidPhaseError):
        r.player_stand("A")


def test_stand_then_stand_ends_after_second(two_player_room):
    r, a, b = two_player_room("h2", "h3", "h4", "h5")
    r.start_game()
    r.player_stand("A")
    assert r.check_game_end() is False
    assert r.status == "playing"
    r.player_stand("B")
    assert r.check_game_end() is True
    assert r.status == "ended"


def test_bust_then_stand_ends_after_second(two_player_room):
    r, a, b = two_player_room("hK", "h3", "sQ", "h5", "c5")
    r.start_game()
    r.player_hit("A")
    assert a.status == "bust"
    assert r.check_game_end() is False
    r.player_stand("B")
    assert r.check_game_end() is True
    assert r.status == "ended"


def test_check_game_end_outside_playing_reports_ended(room):
    assert room.check_game_end() is True
    assert room.status == "waiting"


def test_removing_last_player_ends_room(two_player_room):
    r, a, b = two_player_room()
    r.start_game()
    r.remove_player("A")
    assert r.status == "playing"
    r.remove_player("B")
    assert r.player_count() == 0
    assert r.status == "ended"
    assert r.deck is None
    assert a.room_id is None


def test_remove_missing_player_is_harmless(two_player_room):
    r, a, b = two_player_room()
    assert r.remove_player("nobody") is None
    assert r.player_count() == 2


def test_rebind_keeps_hand(two_player_room):
    r, a, b = two_player_room("h2", "h3", "h4", "h5")
    r.start_game()
    conn = object()
    r.rebind_player("A", conn, "Alicia")
    assert a.conn is conn
    assert a.nickname == "Alicia"
    assert len(a.cards) == 2
    with pytest.raises(PlayerNotFoundError):
        r.rebind_player("nobody", conn, "x")


def test_players_view_hides_everyone_but_viewer(two_player_room):
    r, a, b = two_player_room("h2", "h3", "h4", "h5")
    r.start_game()
    view = {p["id"]: p for p in r.players_view("A")}
    assert view["A"]["cards"] == ["pk-heart2", "pk-heart4"]
    assert view["B"]["cards"] == ["pk-heart3", "pk-hide"]
    assert [p["id"] for p in r.players_view("A")] == ["A", "B"]


def test_connections_skips_disconnected(two_player_room):
    r, a, b = two_player_room()
    conn = object()
    a.attach(conn)
    assert r.connections() == [("A", conn)]


def test_info(two_player_room):
    r, a, b = two_player_room()
    info = r.info()
    assert info["roomId"] == "12345"
    assert info["playerCount"] == 2
    assert info["status"] == "waiting"
    assert info["createdAt"] == r.created_at


# 结算
def test_settle_picks_highest_non_bust(card):
    r = GameRoom("1", deck_factory=None)
    players = [Player(pid, pid) for pid in ("A", "B", "C")]
    hands = {"A": ("hK", "h8"), "B": ("sK", "s9"), "C": ("cK", "cQ", "c5")}
    for p in players:
        r.add_player(p)
        p.status = "acting"
        for t in hands[p.id]:
            p.add_card(card(t))
        if p.status == "acting":
            p.stand()
    r.status = "playing"
    assert r.check_game_end()

    results, winner_id = r.settle()
    assert winner_id == "B"
    assert [res["isWinner"] for res in results] == [False, True, False]
    assert results[2]["status"] == "bust"
    assert results[1]["score"] == 19
    assert results[1]["cards"] == ["pk-spadeK", "pk-spade9"]


def test_tie_goes_to_earliest_seated(card):
    a, b, c = Player("A", "A"), Player("B", "B"), Player("C", "C")
    for p, tokens in ((a, ("h9", "h8")), (b, ("s10", "s9")), (c, ("c10", "c9"))):
        p.status = "acting"
        for t in tokens:
            p.add_card(card(t))
    assert determine_winner([a, b, c]) is b
    assert determine_winner([c, b, a]) is c


def test_all_bust_has_no_winner(card):
    a = Player("A", "A")
    a.status = "acting"
    for t in ("hK", "hQ", "h5"):
        a.add_card(card(t))
    assert determine_winner([a]) is None
    assert determine_winner([]) is None


def test_player_without_cards_never_wins(card):
    dealt = Player("A", "A")
    dealt.status = "acting"
    for t in ("hK", "hQ", "h5"):
        dealt.add_card(card(t))
    late = Player("L", "Late")
    assert late.status == "waiting" and late.cards == []
    assert determine_winner([dealt, late]) is None


def test_late_joiner_does_not_win_when_everyone_else_busts(two_player_room):
    r, a, b = two_player_room("hK", "sK", "hQ", "sQ", "h5", "s5")
    r.start_game()
    late = Player("C", "Carol")
    assert r.add_player(late)

    r.player_hit("A")
    r.player_hit("B")
    assert a.status == "bust" and b.status == "bust"
    assert r.check_game_end()

    results, winner_id = r.settle()
    assert winner_id is None
    assert not any(res["isWinner"] for res in results)
    late_result = [res for res in results if res["playerId"] == "C"][0]
    assert late_result["cards"] == []
    assert late_result["status"] == "waiting"


def test_settle_runs_once_per_hand(two_player_room):
    r, a, b = two_player_room("h2", "h3", "h4", "h5")
    assert r.settle() is None
    r.start_game()
    assert r.settle() is None
    r.player_stand("A")
    r.player_stand("B")
    r.check_game_end()
    outcome = r.settle()
    assert outcome is not None
    results, winner_id = outcome
    assert winner_id == "B"  # 3 + 5 beats 2 + 4
    assert r.settle() is None


def test_concurrent_actions_keep_room_consistent():
    r = GameRoom("1")
    players = [Player(f"p{i}", f"P{i}") for i in range(6)]
    for p in players:
        r.add_player(p)
    r.start_game()
    deck = r.deck
    barrier = threading.Barrier(len(players))
    errors = []

    def play(player_id):
        barrier.wait()
        for _ in range(10):
            try:
                r.player_hit(player_id)
            except ActionNotAllowedError:
                break
        try:
            r.player_stand(player_id)
        except ActionNotAllowedError:
            pass
        except Exception as e:  # pragma: no cover
            errors.append(e)

    threads = [threading.Thread(target=play, args=(p.id,)) for p in players]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=5)

    assert errors == []
    assert r.check_game_end() is True
    dealt = [c for p in players for c in p.cards]
    assert len(set(dealt)) == len(dealt)
    assert len(dealt) + deck.remaining() == 52
    assert all(p.status in ("stood", "bust") for p in players)
