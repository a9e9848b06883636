import random
from collections import Counter

import pytest

from tilebot.config import Settings
from tilebot.engine.bag import BLANK, TOTAL_TILES
from tilebot.engine.session import GameSession, Status
from tilebot.errors import (
    GameOver,
    IllegalPlacement,
    InvalidExchange,
    InvalidPermutation,
    InvalidPlayerCount,
    InvalidWord,
    NoActiveChallenge,
    NotSeated,
    NothingToUndo,
    NotYourTurn,
    TileNotHeld,
)

from .conftest import WordSet, across, down, set_racks


def others(session, player_id):
    return [p for p in session.players if p.id != player_id]


@pytest.mark.parametrize('ids', [['a'], ['a', 'b', 'c', 'd', 'e'], []])
def test_new_rejects_bad_player_counts(ids):
    with pytest.raises(InvalidPlayerCount):
        GameSession.new('C1', 'a', ids)


def test_new_rejects_duplicate_players():
    with pytest.raises(InvalidPlayerCount):
        GameSession.new('C1', 'a', ['a', 'a'])


@pytest.mark.parametrize('ids', [['a', 'b'], ['a', 'b', 'c'], ['a', 'b', 'c', 'd']])
def test_new_deals_seven_each(ids):
    session = GameSession.new('C1', 'a', ids, rng=random.Random(8))
    assert session.status == Status.IN_PROGRESS
    assert sorted(p.id for p in session.players) == sorted(ids)
    assert all(len(p.rack) == 7 and p.score == 0 for p in session.players)
    assert session.bag.remaining() == 100 - 7 * len(ids)
    assert session.turn_index == 0
    assert session.board.is_empty
    assert session.tile_total() == TOTAL_TILES


def test_turn_order_is_randomized():
    orders = {
        tuple(p.id for p in GameSession.new('C1', 'a', ['a', 'b', 'c', 'd'], rng=random.Random(seed)).players)
        for seed in range(20)
    }
    assert len(orders) > 1


def test_pass_advances_turn_modulo_players():
    session = GameSession.new('C1', 'a', ['a', 'b', 'c'], rng=random.Random(8))
    for i in range(5):
        current = session.current_player.id
        assert session.turn_index == i % 3
        session.pass_turn(current)
    assert session.turn_index == 5 % 3


def test_actions_out_of_turn_are_rejected(session, words):
    waiting = session.players[1].id
    before = session.to_state()
    with pytest.raises(NotYourTurn):
        session.pass_turn(waiting)
    with pytest.raises(NotYourTurn):
        session.play(waiting, across(7, 6, 'CAT'), words)
    with pytest.raises(NotYourTurn):
        session.exchange(waiting, session.rack(waiting)[:1])
    with pytest.raises(NotSeated):
        session.pass_turn('mallory')
    assert session.to_state() == before


def test_play_cat_on_start(session, words):
    first = session.current_player
    set_racks(session, {first.id: list('CATEEIO')})
    bag_before = session.bag.remaining()

    result = session.play(first.id, across(7, 6, 'CAT'), words)

    assert result.score == 10
    assert result.words == ['CAT']
    assert first.score == 10
    assert len(first.rack) == 7
    assert Counter(first.rack.tiles) >= Counter('EEIO')
    assert session.bag.remaining() == bag_before - 3
    assert session.board.cell(7, 7).letter == 'A'
    assert session.current_player.id != first.id
    assert session.last_move.kind == 'play'
    assert session.tile_total() == TOTAL_TILES


def test_play_with_blank_uses_blank_tile(session, words):
    first = session.current_player
    set_racks(session, {first.id: ['C', BLANK, 'T', 'E', 'E', 'I', 'O']})
    result = session.play(first.id, across(7, 6, 'cat', blanks=[1]), words)
    assert result.score == 8
    assert session.board.cell(7, 7).is_blank
    assert session.last_move.previousRack.count(BLANK) == 1
    assert session.tile_total() == TOTAL_TILES


def test_invalid_word_changes_nothing(session, words):
    first = session.current_player
    set_racks(session, {first.id: list('TACEEIO')})
    before = session.to_state()
    with pytest.raises(InvalidWord) as exc:
        session.play(first.id, across(7, 6, 'TCA'), words)
    assert exc.value.words == ['TCA']
    assert session.to_state() == before


def test_tiles_not_held_changes_nothing(session, words):
    first = session.current_player
    set_racks(session, {first.id: list('CAEEIOU')})
    before = session.to_state()
    with pytest.raises(TileNotHeld) as exc:
        session.play(first.id, across(7, 6, 'CAT'), words)
    assert exc.value.tiles == ['T']
    assert session.to_state() == before


def test_illegal_placement_changes_nothing(session, words):
    first = session.current_player
    before = session.to_state()
    with pytest.raises(IllegalPlacement) as exc:
        session.play(first.id, across(0, 0, 'CAT'), words)
    assert exc.value.rule == 'start'
    assert session.to_state() == before


def test_undo_play_restores_everything(session, words):
    first = session.current_player
    set_racks(session, {first.id: list('CATEEIO')})
    rack_before = list(first.rack.tiles)
    bag_before = Counter(session.bag.tiles)
    board_before = session.to_state().board

    session.play(first.id, across(7, 6, 'CAT'), words)
    session.undo(first.id)

    first = session.player(first.id)
    assert first.score == 0
    assert first.rack.tiles == rack_before
    assert Counter(session.bag.tiles) == bag_before
    assert session.to_state().board == board_before
    assert session.current_player.id == first.id
    assert session.last_move is None
    assert session.tile_total() == TOTAL_TILES


def test_only_author_can_undo(session):
    first = session.current_player.id
    second = session.players[1].id
    with pytest.raises(NothingToUndo):
        session.undo(first)
    session.pass_turn(first)
    with pytest.raises(NothingToUndo):
        session.undo(second)
    session.undo(first)
    assert session.current_player.id == first
    with pytest.raises(NothingToUndo):
        session.undo(first)


def test_undo_not_possible_after_next_action(session):
    first = session.current_player.id
    second = session.players[1].id
    session.pass_turn(first)
    session.pass_turn(second)
    with pytest.raises(NothingToUndo):
        session.undo(first)


def test_exchange_swaps_tiles(session):
    first = session.current_player
    set_racks(session, {first.id: list('QZXEEIO')})
    result = session.exchange(first.id, ['q', 'z', 'x'])
    assert result.kind == 'exchange'
    assert len(first.rack) == 7
    assert first.rack.tiles[:4] == ['E', 'E', 'I', 'O']
    assert session.bag.remaining() == 86
    assert {'Q', 'Z', 'X'} <= set(session.bag.tiles)
    assert first.score == 0
    assert session.current_player.id != first.id
    assert session.tile_total() == TOTAL_TILES


def test_undo_exchange(session):
    first = session.current_player
    set_racks(session, {first.id: list('QZXEEIO')})
    bag_before = Counter(session.bag.tiles)
    session.exchange(first.id, ['Q', 'Z'])
    session.undo(first.id)
    assert session.player(first.id).rack.tiles == list('QZXEEIO')
    assert Counter(session.bag.tiles) == bag_before
    assert session.current_player.id == first.id


def test_exchange_needs_seven_tiles_in_bag(session):
    first = session.current_player
    held = session.rack(first.id)
    session.bag.tiles = session.bag.tiles[:6]
    with pytest.raises(InvalidExchange):
        session.exchange(first.id, held[:1])
    assert session.rack(first.id) == held


def test_exchange_tiles_must_be_held(session):
    first = session.current_player
    set_racks(session, {first.id: list('EEEEIIO')})
    with pytest.raises(TileNotHeld):
        session.exchange(first.id, ['Q'])
    with pytest.raises(InvalidExchange):
        session.exchange(first.id, [])


def test_upheld_challenge_reverts_play(session, words):
    first = session.current_player
    second = others(session, first.id)[0]
    set_racks(session, {first.id: list('CATEEIO')})
    rack_before = list(first.rack.tiles)

    session.play(first.id, across(7, 6, 'CAT'), words)
    words.words.discard('CAT')
    result = session.challenge(second.id, words)

    assert result.upheld is True
    assert result.words == ['CAT']
    assert session.board.is_empty
    assert session.player(first.id).score == 0
    assert session.player(first.id).rack.tiles == rack_before
    assert session.current_player.id == first.id
    assert session.tile_total() == TOTAL_TILES


def test_failed_challenge_costs_challenger_a_turn(session, words):
    first = session.current_player
    second = others(session, first.id)[0]
    set_racks(session, {first.id: list('CATEEIO')})
    session.play(first.id, across(7, 6, 'CAT'), words)

    result = session.challenge(second.id, words)

    assert result.upheld is False
    assert session.board.cell(7, 7).letter == 'A'
    assert session.player(first.id).score == 10
    # two players: the challenger's turn is forfeited
    assert session.current_player.id == first.id
    assert session.player(second.id).skip_turns == 0
    assert session.last_move.challenged
    with pytest.raises(NoActiveChallenge):
        session.challenge(first.id, words)
    with pytest.raises(NothingToUndo):
        session.undo(first.id)


def test_challenge_penalty_is_configurable(words):
    session = GameSession.new('C1', 'a', ['a', 'b', 'c'], rng=random.Random(4),
                              settings=Settings(challenge_penalty_turns=2))
    p0, p1, p2 = (p.id for p in session.players)
    set_racks(session, {p0: list('CATEEIO')})
    session.play(p0, across(7, 6, 'CAT'), words)
    session.challenge(p1, words)
    assert session.current_player.id == p2
    assert session.player(p1).skip_turns == 1
    session.pass_turn(p2)
    session.pass_turn(p0)
    # p1 still owes a turn
    assert session.current_player.id == p2
    assert session.player(p1).skip_turns == 0


def test_challenge_needs_an_opponent_play(session):
    first = session.current_player.id
    second = session.players[1].id
    with pytest.raises(NoActiveChallenge):
        session.challenge(first, WordSet([]))
    session.pass_turn(first)
    with pytest.raises(NoActiveChallenge):
        session.challenge(second, WordSet([]))


def test_playing_out_finishes_game(session, words):
    first = session.current_player
    second = others(session, first.id)[0]
    set_racks(session, {first.id: list('CAT'), second.id: ['Q', 'Z']})
    session.bag.tiles = []

    session.play(first.id, across(7, 6, 'CAT'), words)

    assert session.status == Status.FINISHED
    assert session.player(first.id).score == 10 + 20
    assert session.player(second.id).score == -20
    assert [p.id for p in session.winners()] == [first.id]
    assert [p.id for p in session.standings()] == [first.id, second.id]
    scoreboard = session.summary().splitlines()
    assert scoreboard.index(f'  {first.id}: 30') < scoreboard.index(f'  {second.id}: -20')
    with pytest.raises(GameOver):
        session.pass_turn(session.current_player.id)


def test_challenge_of_finishing_play(session, words):
    first = session.current_player
    second = others(session, first.id)[0]
    set_racks(session, {first.id: list('CAT'), second.id: ['Q', 'Z']})
    session.bag.tiles = []
    session.play(first.id, across(7, 6, 'CAT'), words)

    words.words.discard('CAT')
    session.challenge(second.id, words)

    assert session.status == Status.IN_PROGRESS
    assert session.player(first.id).score == 0
    assert session.player(second.id).score == 0
    assert sorted(session.rack(first.id)) == ['A', 'C', 'T']
    assert session.current_player.id == first.id


def test_scoreless_turns_end_game():
    session = GameSession.new('C1', 'a', ['a', 'b'], rng=random.Random(4),
                              settings=Settings(max_scoreless_turns=4))
    for _ in range(4):
        session.pass_turn(session.current_player.id)
    assert session.status == Status.FINISHED
    for p in session.players:
        assert p.score == -p.rack.value
    # the last pass can still be taken back
    last = session.last_move.playerId
    session.undo(last)
    assert session.status == Status.IN_PROGRESS
    assert all(p.score == 0 for p in session.players)


def test_challenged_off_play_is_not_scoreless(session, words):
    first = session.current_player
    second = others(session, first.id)[0]
    set_racks(session, {first.id: list('CATEEIO')})
    session.pass_turn(first.id)
    session.pass_turn(second.id)
    assert session.scoreless_turns == 2

    session.play(first.id, across(7, 6, 'CAT'), words)
    assert session.scoreless_turns == 0
    words.words.discard('CAT')
    session.challenge(second.id, words)

    # the reverted play leaves the streak where it was
    assert session.scoreless_turns == 2
    assert session.to_state().scorelessTurns == 2


def test_reorder_any_time(session):
    waiting = session.players[1].id
    rack = session.rack(waiting)
    session.reorder(waiting, list(reversed(rack)))
    assert session.rack(waiting) == list(reversed(rack))
    with pytest.raises(InvalidPermutation):
        session.reorder(waiting, rack[:-1])


def test_state_round_trip(session, words):
    first = session.current_player
    set_racks(session, {first.id: list('CATEEIO')})
    session.play(first.id, across(7, 6, 'CAT'), words)
    state = session.to_state()
    restored = GameSession.from_state(state)
    assert restored.to_state() == state
    assert restored.board == session.board
    assert restored.current_player.id == session.current_player.id


def test_tiles_conserved_through_a_game(words):
    session = GameSession.new('C1', 'a', ['a', 'b', 'c'], rng=random.Random(21))
    p0, p1, p2 = (p.id for p in session.players)
    set_racks(session, {p0: list('CATEEIO'), p1: list('OATEEIN'), p2: list('AATTEEN')})
    steps = [
        lambda: session.play(p0, across(7, 6, 'CAT'), words),
        lambda: session.play(p1, down(8, 6, 'OAT'), words),
        lambda: session.exchange(p2, session.rack(p2)[:2]),
        lambda: session.pass_turn(p0),
        lambda: session.undo(p0),
        lambda: session.pass_turn(p0),
    ]
    for step in steps:
        step()
        assert session.tile_total() == TOTAL_TILES
