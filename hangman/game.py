# Core game logic for hangman: game state, hidden-word rendering, guess
# application and scoring.
# Rules:
# - Letters are compared case-insensitively; spaces in the word are always
#   revealed.
# - A repeated letter is a no-op: it consumes no attempt.
# - Only a letter that does not occur in the word consumes an attempt.
# - A complete word wins before an empty budget loses.
# - A won game scores a fixed bonus; a lost game scores per correct letter.

from __future__ import annotations
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import FrozenSet, Iterable, Optional
from .config import FULL_WORD_POINTS, MAX_ATTEMPTS, PLACEHOLDER, POINTS_PER_LETTER


class Outcome(str, Enum):
    NO_CHANGE = "NO_CHANGE"
    IN_PROGRESS = "IN_PROGRESS"
    WON = "WON"
    LOST = "LOST"

    @property
    def terminal(self) -> bool:
        return self in (Outcome.WON, Outcome.LOST)


@dataclass(frozen=True)
class GameRules:
    max_attempts: int = MAX_ATTEMPTS
    full_word_points: int = FULL_WORD_POINTS
    points_per_letter: int = POINTS_PER_LETTER
    placeholder: str = PLACEHOLDER

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if len(self.placeholder) != 1 or self.placeholder.isalpha() or self.placeholder == " ":
            raise ValueError("placeholder must be a single non-letter, non-space character")


DEFAULT_RULES = GameRules()


@dataclass(frozen=True)
class SecretWord:
    id: int
    text: str


@dataclass(frozen=True)
class Player:
    id: int
    name: str


@dataclass(frozen=True)
class CompletedGame:
    id: int
    player_id: int
    player_name: str
    word: str
    outcome: Outcome
    score: int
    completed_at: datetime


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class GameState:
    player_id: int
    word: SecretWord
    attempted_letters: FrozenSet[str] = frozenset()
    remaining_attempts: int = MAX_ATTEMPTS
    started_at: datetime = field(default_factory=_utcnow)
    id: Optional[int] = None

    def __post_init__(self) -> None:
        # Accept any iterable of letters but always store a frozenset.
        if not isinstance(self.attempted_letters, frozenset):
            object.__setattr__(self, "attempted_letters", frozenset(self.attempted_letters))
        if self.remaining_attempts < 0:
            raise ValueError("remaining_attempts cannot be negative")
        for letter in self.attempted_letters:
            if len(letter) != 1 or not letter.isalpha() or letter != letter.upper():
                raise ValueError(f"invalid attempted letter: {letter!r}")

    def within_budget(self, rules: GameRules) -> GameState:
        # A budget lowered while games are in flight caps their remaining attempts.
        if self.remaining_attempts > rules.max_attempts:
            return replace(self, remaining_attempts=rules.max_attempts)
        return self


@dataclass(frozen=True)
class GuessResult:
    state: GameState
    outcome: Outcome
    hidden: str
    complete: bool
    score: int

    @property
    def terminal(self) -> bool:
        return self.outcome.terminal


def normalize_letter(raw: str) -> str:
    """
    Uppercase a guess. Only single letters that stay single when uppercased
    are accepted ("ß" becomes "SS" and is rejected), so every accepted guess
    survives the stored letter list unchanged.
    """
    letter = raw.strip().upper()
    if len(letter) != 1 or not letter.isalpha():
        raise ValueError("guess must be a single letter")
    return letter


def encode_letters(letters: Iterable[str]) -> str:
    """Serialize attempted letters for storage, e.g. ``"A,C,X"``."""
    return ",".join(sorted(letters))


def decode_letters(raw: Optional[str]) -> FrozenSet[str]:
    """Parse a stored letter list. Blank entries are skipped."""
    if not raw:
        return frozenset()
    return frozenset(part.strip()[0].upper() for part in raw.split(",") if part.strip())


def new_game(player_id: int, word: SecretWord, rules: GameRules = DEFAULT_RULES,
             now: Optional[datetime] = None) -> GameState:
    return GameState(
        player_id=player_id,
        word=word,
        attempted_letters=frozenset(),
        remaining_attempts=rules.max_attempts,
        started_at=now or _utcnow(),
    )


def render_hidden(secret_word: str, attempted_letters: Iterable[str],
                  rules: GameRules = DEFAULT_RULES) -> str:
    attempted = set(attempted_letters)
    return "".join(
        ch if ch == " " or ch.upper() in attempted else rules.placeholder
        for ch in secret_word
    )


def is_complete(hidden: str, rules: GameRules = DEFAULT_RULES) -> bool:
    return rules.placeholder not in hidden


def score_of(secret_word: str, attempted_letters: Iterable[str], complete: bool,
             remaining_attempts: int, rules: GameRules = DEFAULT_RULES) -> int:
    """
    Score for a game snapshot.

    A complete word earns the fixed bonus no matter how many attempts were
    used. With no attempts left, each distinct attempted letter that occurs
    in the word earns ``points_per_letter``. A live game scores 0.
    """
    if complete:
        return rules.full_word_points
    if remaining_attempts == 0:
        word = secret_word.upper()
        correct = sum(1 for letter in set(attempted_letters) if letter in word)
        return correct * rules.points_per_letter
    return 0


def status_of(state: GameState, rules: GameRules = DEFAULT_RULES) -> Outcome:
    hidden = render_hidden(state.word.text, state.attempted_letters, rules)
    if is_complete(hidden, rules):
        return Outcome.WON
    if state.remaining_attempts == 0:
        return Outcome.LOST
    return Outcome.IN_PROGRESS


def snapshot(state: GameState, outcome: Optional[Outcome] = None,
             rules: GameRules = DEFAULT_RULES) -> GuessResult:
    """Render a state without changing it. The score is provisional for live games."""
    hidden = render_hidden(state.word.text, state.attempted_letters, rules)
    complete = is_complete(hidden, rules)
    score = score_of(state.word.text, state.attempted_letters, complete,
                     state.remaining_attempts, rules)
    return GuessResult(
        state=state,
        outcome=outcome or status_of(state, rules),
        hidden=hidden,
        complete=complete,
        score=score,
    )


def apply_guess(state: GameState, raw_letter: str, rules: GameRules = DEFAULT_RULES) -> GuessResult:
    # Callers only pass active games: terminal states are deleted on completion.
    letter = normalize_letter(raw_letter)

    if letter in state.attempted_letters:
        return snapshot(state, Outcome.NO_CHANGE, rules)

    remaining = state.remaining_attempts
    if letter not in state.word.text.upper():
        remaining = max(remaining - 1, 0)

    updated = replace(
        state,
        attempted_letters=state.attempted_letters | {letter},
        remaining_attempts=remaining,
    )

    hidden = render_hidden(updated.word.text, updated.attempted_letters, rules)
    complete = is_complete(hidden, rules)
    if complete:
        outcome = Outcome.WON
    elif updated.remaining_attempts == 0:
        outcome = Outcome.LOST
    else:
        outcome = Outcome.IN_PROGRESS

    score = score_of(updated.word.text, updated.attempted_letters, complete,
                     updated.remaining_attempts, rules)
    return GuessResult(state=updated, outcome=outcome, hidden=hidden, complete=complete, score=score)
