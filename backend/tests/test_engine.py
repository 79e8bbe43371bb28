"""Tests for the GameEngine: dealing, blinds, streets, showdown and invariants."""

import random
from unittest.mock import patch

import pytest

from holdem.cards import Card, Deck
from holdem.engine import GameEngine, PlayerAction, PlayerState, Street
from holdem.errors import GameInProgress, InsufficientPlayers, NoActiveGame


# ── Helpers ──────────────────────────────────────────────────────────

def _make_engine(
    n_players: int = 3,
    starting_stack: int = 10000,
    small_blind: int = 100,
    seed: int = 7,
) -> GameEngine:
    return GameEngine(
        table_id="chan-1",
        player_ids=[f"p{i}" for i in range(n_players)],
        starting_stack=starting_stack,
        small_blind=small_blind,
        rng=random.Random(seed),
    )


def _started(n_players: int = 3, **kwargs) -> GameEngine:
    e = _make_engine(n_players, **kwargs)
    e.start_hand()
    return e


def _action_pid(engine: GameEngine) -> str:
    """Return the player_id of whoever's turn it is."""
    return engine.seats[engine.action_on_idx].player_id


def _passive(engine: GameEngine) -> dict:
    """Check if possible, otherwise call, for whoever is to act."""
    pid = _action_pid(engine)
    p = engine._find_player(pid)
    if p.bet_this_round == engine.current_bet:
        return engine.process_action(pid, "check")
    return engine.process_action(pid, "call")


def _play_to(engine: GameEngine, street: Street) -> None:
    while engine.hand_active and engine.street != street:
        _passive(engine)


def _cards(s: str) -> list[Card]:
    return [Card.from_str(c) for c in s.split()]


# ── PlayerState ──────────────────────────────────────────────────────

class TestPlayerState:
    def test_initial_state(self):
        ps = PlayerState("u1", 10000)
        assert ps.player_id == "u1"
        assert ps.stack == 10000
        assert ps.is_active
        assert not ps.has_acted
        assert ps.hole_cards == []

    def test_reset_for_new_round_active(self):
        ps = PlayerState("u1", 500)
        ps.bet_this_round = 200
        ps.has_acted = True
        ps.last_action = "Call 200"
        ps.reset_for_new_round()
        assert ps.bet_this_round == 0
        assert not ps.has_acted
        assert ps.last_action == ""

    def test_reset_for_new_round_keeps_fold(self):
        ps = PlayerState("u1", 500)
        ps.is_active = False
        ps.last_action = "Fold"
        ps.bet_this_round = 200
        ps.reset_for_new_round()
        assert ps.bet_this_round == 0
        assert ps.last_action == "Fold"

    def test_to_dict_hides_cards_by_default(self):
        ps = PlayerState("u1", 500)
        ps.hole_cards = _cards("As Kh")
        assert "hole_cards" not in ps.to_dict()
        assert len(ps.to_dict(reveal_cards=True)["hole_cards"]) == 2


# ── Engine creation ──────────────────────────────────────────────────

class TestEngineCreation:
    def test_needs_two_players(self):
        with pytest.raises(InsufficientPlayers):
            GameEngine("t", ["solo"])

    def test_duplicate_ids_rejected(self):
        with pytest.raises(ValueError):
            GameEngine("t", ["a", "a"])

    def test_stack_must_cover_big_blind(self):
        with pytest.raises(ValueError):
            GameEngine("t", ["a", "b"], starting_stack=150, small_blind=100)

    def test_big_blind_is_double(self):
        e = _make_engine(small_blind=25)
        assert e.big_blind == 50

    def test_no_hand_before_start(self):
        e = _make_engine()
        assert not e.hand_active
        assert e.current_player is None

    def test_cannot_deal_street_before_start(self):
        e = _make_engine()
        with pytest.raises(NoActiveGame):
            e._advance_street()
        assert e.community_cards == []


# ── Starting a hand ──────────────────────────────────────────────────

class TestStartHand:
    def test_heads_up_blinds(self):
        """2 players, 10000 each, 100/200 blinds."""
        e = _make_engine(2)
        state = e.start_hand()
        assert state["pot"] == 300
        assert state["current_bet"] == 200
        assert state["stage"] == "pre-flop"
        assert all(len(p.hole_cards) == 2 for p in e.seats)
        assert sorted(p.stack for p in e.seats) == [9800, 9900]
        assert e.total_chips == 20000

    def test_blind_positions_and_utg(self):
        for seed in range(10):
            e = _started(5, seed=seed)
            d = e.dealer_idx
            sb, bb = e.seats[(d + 1) % 5], e.seats[(d + 2) % 5]
            assert sb.bet_this_round == 100
            assert bb.bet_this_round == 200
            assert e.action_on_idx == (d + 3) % 5
            others = [p for i, p in enumerate(e.seats) if i not in ((d + 1) % 5, (d + 2) % 5)]
            assert all(p.bet_this_round == 0 and p.stack == 10000 for p in others)

    def test_heads_up_small_blind_acts_first(self):
        e = _started(2)
        d = e.dealer_idx
        assert e.action_on_idx == (d + 1) % 2
        assert e.seats[e.action_on_idx].bet_this_round == 100

    def test_hole_cards_dealt_in_seat_order(self):
        e = _started(4, seed=11)
        # Replay the same random stream: shuffle first, then dealer choice
        rng = random.Random(11)
        deck = Deck(rng)
        assert e.dealer_idx == rng.randrange(4)
        expected = deck.deal(8)
        for i, p in enumerate(e.seats):
            assert p.hole_cards == expected[2 * i:2 * i + 2]

    def test_deck_after_deal(self):
        e = _started(6)
        assert e.deck.remaining == 52 - 12
        dealt = [c for p in e.seats for c in p.hole_cards]
        assert len(set(dealt)) == 12
        assert not set(dealt) & set(e.deck.cards)

    def test_dealer_varies_with_randomness(self):
        dealers = {_started(4, seed=s).dealer_idx for s in range(40)}
        assert len(dealers) > 1

    def test_cannot_start_twice(self):
        e = _started(2)
        with pytest.raises(GameInProgress):
            e.start_hand()

    def test_large_table(self):
        e = _started(23)
        assert e.deck.remaining == 52 - 46


# ── Street progression ───────────────────────────────────────────────

class TestStreets:
    def test_call_then_check_deals_flop(self):
        """UTG calls, big blind checks: flop comes."""
        e = _started(2)
        a = _action_pid(e)
        e.process_action(a, "call")
        assert e.street == Street.PREFLOP
        b = _action_pid(e)
        assert b != a
        e.process_action(b, "check")

        assert e.street == Street.FLOP
        assert len(e.community_cards) == 3
        assert e.deck.remaining == 52 - 4 - 1 - 3
        assert e.current_bet == 0
        assert all(v == 0 for v in e.contributions.values())
        assert not any(p.has_acted for p in e.seats)
        assert e.pot == 400

    def test_big_blind_gets_option(self):
        e = _started(3)
        _passive(e)  # UTG calls
        _passive(e)  # SB completes
        assert e.street == Street.PREFLOP
        bb = e.seats[(e.dealer_idx + 2) % 3]
        assert _action_pid(e) == bb.player_id

    def test_turn_and_river_one_card_each(self):
        e = _started(3)
        _play_to(e, Street.TURN)
        assert len(e.community_cards) == 4
        _play_to(e, Street.RIVER)
        assert len(e.community_cards) == 5
        # 6 hole + 3 burns + 5 board
        assert e.deck.remaining == 52 - 6 - 3 - 5

    def test_community_cards_only_grow(self):
        e = _started(4, seed=3)
        seen: list[Card] = []
        while e.hand_active:
            _passive(e)
            assert e.community_cards[:len(seen)] == seen
            assert len(e.community_cards) in (0, 3, 4, 5)
            seen = list(e.community_cards)

    def test_turn_passes_after_round_closer(self):
        e = _started(3)
        _passive(e)
        _passive(e)
        closer = e.action_on_idx
        _passive(e)  # BB checks, flop dealt
        assert e.street == Street.FLOP
        assert e.action_on_idx == (closer + 1) % 3

    def test_river_check_around_goes_to_showdown(self):
        e = _started(3)
        _play_to(e, Street.RIVER)
        for _ in range(3):
            _passive(e)
        assert e.street == Street.SHOWDOWN
        assert not e.hand_active
        assert e.winners
        assert sum(e.payouts.values()) == e.pot

    def test_raise_reopens_action(self):
        e = _started(3)
        _play_to(e, Street.FLOP)
        first = _action_pid(e)
        e.process_action(first, "check")
        second = _action_pid(e)
        e.process_action(second, "bet", 400)
        # The first player has to act again before the turn
        third = _action_pid(e)
        e.process_action(third, "call")
        assert e.street == Street.FLOP
        assert _action_pid(e) == first
        e.process_action(first, "call")
        assert e.street == Street.TURN


# ── Showdown ─────────────────────────────────────────────────────────

class TestShowdown:
    def test_bet_and_fold_wins_without_evaluation(self):
        e = _started(2)
        a = _action_pid(e)
        e.process_action(a, "raise", 400)
        b = _action_pid(e)
        with patch("holdem.engine.rank_hands") as ranker:
            state = e.process_action(b, "fold")
        ranker.assert_not_called()

        assert state["stage"] == "showdown"
        assert not state["hand_active"]
        assert state["winners"] == [a]
        assert state["payouts"] == {a: 600}
        assert state["hands"] == {}
        assert e.community_cards == []

    def test_fold_to_last_player_mid_hand(self):
        e = _started(3)
        _play_to(e, Street.TURN)
        e.process_action(_action_pid(e), "fold")
        last_but_one = _action_pid(e)
        e.process_action(last_but_one, "fold")
        winner = [p.player_id for p in e.seats if p.is_active]
        assert e.winners == winner
        assert e.payouts == {winner[0]: e.pot}
        assert len(e.community_cards) == 4

    def test_three_way_river_with_split_pot(self):
        """Three players reach the river; two tie and the odd chip goes to the earlier seat."""
        e = _started(3, small_blind=1)
        _passive(e)
        _passive(e)
        _passive(e)
        assert e.pot == 6
        assert e.street == Street.FLOP

        e.process_action(_action_pid(e), "bet", 97)
        _passive(e)
        _passive(e)
        assert e.street == Street.TURN
        _play_to(e, Street.RIVER)
        assert e.pot == 297

        order = [e.action_on_idx, (e.action_on_idx + 1) % 3, (e.action_on_idx + 2) % 3]
        p1, p2, p3 = (e.seats[i] for i in order)
        e.community_cards = _cards("As Kd 8c 5h 2s")
        p1.hole_cards = _cards("Ac Qh")
        p2.hole_cards = _cards("Ad Qs")
        p3.hole_cards = _cards("Jc 9d")

        e.process_action(p1.player_id, "bet", 2)
        e.process_action(p2.player_id, "call")
        state = e.process_action(p3.player_id, "fold")

        assert e.pot == 301
        assert set(state["winners"]) == {p1.player_id, p2.player_id}
        first, second = sorted([p1, p2], key=lambda p: e.seats.index(p))
        assert state["payouts"] == {first.player_id: 151, second.player_id: 150}
        assert state["winners"] == [first.player_id, second.player_id]
        assert state["hands"] == {p1.player_id: "One Pair", p2.player_id: "One Pair"}

    def test_showdown_reveals_only_contenders(self):
        e = _started(3)
        e.process_action(_action_pid(e), "fold")
        _play_to(e, Street.SHOWDOWN)
        state = e.snapshot()
        for p in state["players"]:
            assert ("hole_cards" in p) == p["is_active"]

    def test_stacks_untouched_by_payout(self):
        e = _started(2)
        _play_to(e, Street.SHOWDOWN)
        assert e.total_chips == 20000
        assert sum(e.payouts.values()) == e.pot == 400


# ── Invariants under random legal play ───────────────────────────────

def _random_action(engine: GameEngine, rng: random.Random):
    pid = _action_pid(engine)
    choices = engine.get_valid_actions(pid)
    pick = rng.choice(choices)
    if pick["action"] in ("bet", "raise") and rng.random() < 0.5:
        p = engine._find_player(pid)
        top = p.bet_this_round + p.stack
        if top > engine.current_bet:
            return pid, pick["action"], rng.randint(engine.current_bet + 1, top)
    return pid, pick["action"], pick.get("amount")


class TestInvariants:
    @pytest.mark.parametrize("seed", range(25))
    def test_random_hands(self, seed):
        rng = random.Random(seed)
        n = rng.randint(2, 8)
        e = _started(n, seed=seed, starting_stack=rng.choice([400, 2000, 10000]))
        total = e.total_chips

        advance = e._advance_street

        def gated_advance():
            for p in e.seats:
                if p.is_active:
                    assert p.has_acted
                    assert p.bet_this_round == e.current_bet
            advance()

        e._advance_street = gated_advance

        steps = 0
        while e.hand_active:
            board_before = len(e.community_cards)
            pid, action, amount = _random_action(e, rng)
            e.process_action(pid, action, amount)
            steps += 1

            assert e.total_chips == total
            assert all(p.stack >= 0 for p in e.seats)
            assert len(e.community_cards) >= board_before
            if e.hand_active:
                assert e.seats[e.action_on_idx].is_active
            assert steps < 500

        assert sum(e.payouts.values()) == e.pot
        assert set(e.winners) <= {p.player_id for p in e.seats if p.is_active}
        assert e.action_count == steps


# ── Views ────────────────────────────────────────────────────────────

class TestViews:
    def test_snapshot_hides_hole_cards(self):
        e = _started(3)
        state = e.snapshot()
        assert all("hole_cards" not in p for p in state["players"])
        assert state["action_on"] == _action_pid(e)
        assert state["winners"] == []

    def test_player_view_shows_own_cards_only(self):
        e = _started(3)
        view = e.player_view("p1")
        assert view["my_cards"] == [c.to_dict() for c in e.seats[1].hole_cards]
        assert all("hole_cards" not in p for p in view["players"])

    def test_player_view_unknown_player(self):
        e = _started(2)
        view = e.player_view("stranger")
        assert view["my_cards"] == []
        assert view["valid_actions"] == []

    def test_valid_actions_facing_bet(self):
        e = _started(3)
        actions = e.get_valid_actions(_action_pid(e))
        assert actions == [
            {"action": "fold"},
            {"action": "call", "amount": 200},
            {"action": "raise", "amount": 400},
        ]

    def test_valid_actions_unopened_street(self):
        e = _started(2)
        _play_to(e, Street.FLOP)
        actions = e.get_valid_actions(_action_pid(e))
        assert actions == [
            {"action": "fold"},
            {"action": "check"},
            {"action": "bet", "amount": 200},
        ]

    def test_valid_actions_empty_when_not_your_turn(self):
        e = _started(3)
        waiting = next(p for p in e.seats if p.player_id != _action_pid(e))
        assert e.get_valid_actions(waiting.player_id) == []

    def test_unaffordable_raise_not_offered(self):
        e = _started(3, starting_stack=300)
        actions = [a["action"] for a in e.get_valid_actions(_action_pid(e))]
        assert actions == ["fold", "call"]

    def test_timeout_action(self):
        e = _started(2)
        assert e.timeout_action() == PlayerAction.FOLD
        _passive(e)
        # Big blind owes nothing
        assert e.timeout_action() == PlayerAction.CHECK
