from datetime import datetime, timezone

import pytest

from hangman.game import (
    GameRules, GameState, Outcome, SecretWord, apply_guess, decode_letters,
    encode_letters, is_complete, new_game, normalize_letter, render_hidden, score_of, snapshot,
    status_of,
)


def start(text, rules=GameRules()):
    return new_game(1, SecretWord(id=1, text=text), rules)


def play(state, letters, rules=GameRules()):
    result = None
    for letter in letters:
        result = apply_guess(state, letter, rules)
        state = result.state
    return result


def test_dog_scenario():
    state = start("DOG")

    r = apply_guess(state, "d")
    assert r.hidden == "D__"
    assert r.state.remaining_attempts == 7
    assert r.outcome is Outcome.IN_PROGRESS
    assert r.score == 0

    r = apply_guess(r.state, "x")
    assert r.hidden == "D__"
    assert r.state.remaining_attempts == 6

    r = apply_guess(r.state, "O")
    assert r.hidden == "DO_"
    assert r.state.remaining_attempts == 6

    r = apply_guess(r.state, "g")
    assert r.hidden == "DOG"
    assert r.complete
    assert r.outcome is Outcome.WON
    assert r.terminal
    assert r.score == 20


def test_cat_loss_scenario():
    r = play(start("CAT"), "XYZQW")
    assert r.state.remaining_attempts == 2
    assert r.outcome is Outcome.IN_PROGRESS

    r = apply_guess(r.state, "C")
    assert r.hidden == "C__"
    assert r.state.remaining_attempts == 2

    r = apply_guess(r.state, "L")
    assert r.state.remaining_attempts == 1

    r = apply_guess(r.state, "M")
    assert r.state.remaining_attempts == 0
    assert r.outcome is Outcome.LOST
    assert r.score == 1


def test_repeat_guess_is_a_no_op():
    first = apply_guess(start("DOG"), "X")
    again = apply_guess(first.state, "x")
    assert again.outcome is Outcome.NO_CHANGE
    assert again.state is first.state
    assert again.state.remaining_attempts == 6
    assert len(again.state.attempted_letters) == 1


def test_repeat_correct_guess_is_a_no_op():
    first = apply_guess(start("DOG"), "D")
    again = apply_guess(first.state, "D")
    assert again.outcome is Outcome.NO_CHANGE
    assert again.hidden == "D__"
    assert again.state.remaining_attempts == 7


def test_letter_with_several_occurrences_uses_one_slot():
    r = apply_guess(start("BANANA"), "a")
    assert r.hidden == "_A_A_A"
    assert r.state.remaining_attempts == 7
    assert r.state.attempted_letters == frozenset({"A"})


def test_remaining_attempts_never_negative():
    state = GameState(player_id=1, word=SecretWord(1, "AB"), remaining_attempts=0)
    r = apply_guess(state, "Z")
    assert r.state.remaining_attempts == 0
    assert r.outcome is Outcome.LOST


def test_win_takes_priority_over_empty_budget():
    assert score_of("AB", {"A", "B"}, complete=True, remaining_attempts=0) == 20
    state = GameState(player_id=1, word=SecretWord(1, "AB"),
                      attempted_letters={"A"}, remaining_attempts=1)
    r = apply_guess(state, "B")
    assert r.outcome is Outcome.WON
    assert r.state.remaining_attempts == 1


def test_won_score_ignores_attempts_used():
    quick = play(start("DOG"), "DOG")
    slow = play(start("DOG"), "XYZQWDOG")
    assert quick.score == slow.score == 20
    assert slow.state.remaining_attempts == 2


def test_lost_score_counts_distinct_correct_letters():
    assert score_of("CAT", {"C", "A", "X", "Z"}, complete=False, remaining_attempts=0) == 2
    assert score_of("cat", {"C"}, complete=False, remaining_attempts=0) == 1
    assert score_of("CAT", {"X"}, complete=False, remaining_attempts=0) == 0


def test_live_snapshot_scores_provisionally():
    state = play(start("CAT"), "CA").state
    view = snapshot(state)
    assert view.outcome is Outcome.IN_PROGRESS
    assert view.score == 0


def test_custom_rules():
    rules = GameRules(max_attempts=2, full_word_points=50, points_per_letter=3, placeholder="*")
    r = play(start("CAT", rules), "CX", rules)
    assert r.hidden == "C**"
    assert r.state.remaining_attempts == 1
    r = apply_guess(r.state, "Y", rules)
    assert r.outcome is Outcome.LOST
    assert r.score == 3

    r = play(start("AT", rules), "AT", rules)
    assert r.score == 50


@pytest.mark.parametrize("word, letters, expected", [
    ("ice cream", set(), "___ _____"),
    ("ice cream", {"E"}, "__e __e__"),
    ("Dog", {"D"}, "D__"),
    ("dog", {"D", "G"}, "d_g"),
    ("", {"A"}, ""),
])
def test_render_hidden(word, letters, expected):
    hidden = render_hidden(word, letters)
    assert hidden == expected
    assert len(hidden) == len(word)


def test_spaces_count_as_revealed_for_completion():
    r = play(start("NEW YORK"), "NEWYORK")
    assert r.hidden == "NEW YORK"
    assert r.outcome is Outcome.WON
    assert is_complete("NEW YORK")
    assert not is_complete("NEW Y_RK")


@pytest.mark.parametrize("word, guesses", [
    ("HANGMAN", "AEIOUHNGMXYZ"),
    ("PYTHON", "QWERTYUIOP"),
    ("ICE CREAM", "ZZZIIICCCEEE"),
    ("BOOKKEEPER", "ABCDEFGHIJ"),
])
def test_guess_sequence_invariants(word, guesses):
    state = start(word)
    for letter in guesses:
        result = apply_guess(state, letter)
        new = result.state
        assert len(result.hidden) == len(word)
        assert 0 <= new.remaining_attempts <= state.remaining_attempts
        assert new.attempted_letters >= state.attempted_letters
        assert new.started_at == state.started_at
        assert result.outcome is not Outcome.WON or "_" not in result.hidden
        if result.terminal:
            break
        state = new


def test_status_of():
    word = SecretWord(1, "AB")
    assert status_of(GameState(player_id=1, word=word)) is Outcome.IN_PROGRESS
    assert status_of(GameState(player_id=1, word=word, attempted_letters={"A", "B"},
                               remaining_attempts=3)) is Outcome.WON
    assert status_of(GameState(player_id=1, word=word, attempted_letters={"A", "X"},
                               remaining_attempts=0)) is Outcome.LOST


def test_new_game_uses_full_budget():
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    state = new_game(3, SecretWord(9, "WORD"), GameRules(max_attempts=4), now=now)
    assert state.remaining_attempts == 4
    assert state.attempted_letters == frozenset()
    assert state.started_at == now
    assert state.id is None


def test_game_state_validation():
    word = SecretWord(1, "CAT")
    with pytest.raises(ValueError):
        GameState(player_id=1, word=word, remaining_attempts=-1)
    with pytest.raises(ValueError):
        GameState(player_id=1, word=word, attempted_letters={"a"})
    with pytest.raises(ValueError):
        GameState(player_id=1, word=word, attempted_letters={"AB"})
    with pytest.raises(ValueError):
        GameState(player_id=1, word=word, attempted_letters={","})

    state = GameState(player_id=1, word=word, attempted_letters=["C", "A", "C"])
    assert state.attempted_letters == frozenset({"C", "A"})


def test_rules_validation():
    with pytest.raises(ValueError):
        GameRules(max_attempts=0)
    with pytest.raises(ValueError):
        GameRules(placeholder="X")
    with pytest.raises(ValueError):
        GameRules(placeholder="__")


def test_letter_serialization():
    assert encode_letters({"X", "A", "C"}) == "A,C,X"
    assert encode_letters(set()) == ""
    assert decode_letters("a, C,,x ") == frozenset({"A", "C", "X"})
    assert decode_letters("") == frozenset()
    assert decode_letters(None) == frozenset()
    assert decode_letters(encode_letters({"Q", "Z"})) == frozenset({"Q", "Z"})


@pytest.mark.parametrize("bad", ["ca", "", " ", ",", "1", "-", "ß", "ﬁ"])
def test_non_letter_guess_rejected(bad):
    with pytest.raises(ValueError):
        apply_guess(start("CAT"), bad)


@pytest.mark.parametrize("raw, expected", [("a", "A"), (" q ", "Q"), ("é", "É")])
def test_normalize_letter(raw, expected):
    assert normalize_letter(raw) == expected


def test_accepted_guesses_survive_storage():
    state = play(start("CAT"), "cé").state
    assert decode_letters(encode_letters(state.attempted_letters)) == state.attempted_letters


def test_within_budget_caps_remaining_attempts():
    word = SecretWord(1, "CAT")
    state = GameState(player_id=1, word=word, attempted_letters={"X"}, remaining_attempts=6)
    capped = state.within_budget(GameRules(max_attempts=2))
    assert capped.remaining_attempts == 2
    assert capped.attempted_letters == state.attempted_letters
    assert state.within_budget(GameRules()) is state
