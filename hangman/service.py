# Game orchestration: finds or creates a player's active game, routes guesses
# into the engine and moves finished games into history.
#
# Each operation runs inside one unit of work (a storage transaction) and
# holds a per-player lock, so read-modify-write of a player's active game is
# serialized.

from __future__ import annotations
import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, ContextManager, Dict, Iterator, List, Optional, Protocol
from .game import (
    DEFAULT_RULES, CompletedGame, GameRules, GameState, GuessResult, Outcome,
    Player, SecretWord, apply_guess, new_game, normalize_letter, snapshot,
)
from .models import CompletedGameOut, GameView

logger = logging.getLogger(__name__)


class GameError(Exception):
    """Base class for precondition failures surfaced to the caller."""


class PlayerNotFound(GameError):
    def __init__(self, player_id: int):
        super().__init__(f"Player {player_id} not found.")
        self.player_id = player_id


class NoWordsAvailable(GameError):
    def __init__(self):
        super().__init__("No unused words are available.")


class NoActiveGame(GameError):
    def __init__(self, player_id: int):
        super().__init__(f"Player {player_id} has no game in progress.")
        self.player_id = player_id


class InvalidLetter(GameError):
    def __init__(self, letter: str):
        super().__init__(f"{letter!r} is not a single letter.")
        self.letter = letter


class PlayerDirectory(Protocol):
    def get(self, player_id: int) -> Optional[Player]: ...


class WordSource(Protocol):
    def reserve_random_unused_word(self) -> Optional[SecretWord]: ...


class ActiveGameStore(Protocol):
    def find_for_player(self, player_id: int) -> Optional[GameState]: ...
    def get(self, player_id: int, word_id: int) -> Optional[GameState]: ...
    def save(self, state: GameState) -> GameState: ...
    def delete(self, state: GameState) -> None: ...


class GameHistory(Protocol):
    def record(self, player_id: int, word: SecretWord, outcome: Outcome, score: int,
               completed_at: datetime) -> CompletedGame: ...
    def list_for_player(self, player_id: int) -> List[CompletedGame]: ...
    def list_all(self) -> List[CompletedGame]: ...


class UnitOfWork(Protocol):
    players: PlayerDirectory
    words: WordSource
    active_games: ActiveGameStore
    history: GameHistory


UnitOfWorkFactory = Callable[[], ContextManager[UnitOfWork]]


class _PlayerLocks:
    """Per-player locks, dropped once no caller holds or waits on them."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[int, threading.Lock] = {}
        self._users: Dict[int, int] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, player_id: int) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(player_id, threading.Lock())
            self._users[player_id] = self._users.get(player_id, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._guard:
                self._users[player_id] -= 1
                if not self._users[player_id]:
                    del self._users[player_id]
                    del self._locks[player_id]


def to_view(result: GuessResult) -> GameView:
    state = result.state
    return GameView(
        player_id=state.player_id,
        hidden_word=result.hidden,
        attempted_letters=sorted(state.attempted_letters),
        remaining_attempts=state.remaining_attempts,
        complete=result.complete,
        score=result.score,
        status=result.outcome.value,
    )


def to_history_entry(game: CompletedGame) -> CompletedGameOut:
    return CompletedGameOut(
        id=game.id,
        player_id=game.player_id,
        player_name=game.player_name,
        word=game.word,
        outcome=game.outcome.value,
        score=game.score,
        completed_at=game.completed_at,
    )


class GameOrchestrator:
    def __init__(self, unit_of_work: UnitOfWorkFactory, rules: GameRules = DEFAULT_RULES):
        self._uow = unit_of_work
        self.rules = rules
        self._locks = _PlayerLocks()

    def _require_player(self, uow: UnitOfWork, player_id: int) -> Player:
        player = uow.players.get(player_id)
        if player is None:
            logger.warning("player %s not found", player_id)
            raise PlayerNotFound(player_id)
        return player

    def _require_active(self, uow: UnitOfWork, player_id: int) -> GameState:
        state = uow.active_games.find_for_player(player_id)
        if state is None:
            logger.warning("player %s has no active game", player_id)
            raise NoActiveGame(player_id)
        clamped = state.within_budget(self.rules)
        if clamped is not state:
            logger.warning("game %s had %s attempts left, capped to %s",
                           state.id, state.remaining_attempts, clamped.remaining_attempts)
        return clamped

    def start_game(self, player_id: int) -> GameView:
        with self._locks.hold(player_id), self._uow() as uow:
            self._require_player(uow, player_id)

            existing = uow.active_games.find_for_player(player_id)
            if existing is not None:
                logger.info("player %s resumes game on word %s", player_id, existing.word.id)
                return to_view(snapshot(existing.within_budget(self.rules), rules=self.rules))

            word = uow.words.reserve_random_unused_word()
            if word is None:
                logger.warning("word pool exhausted for player %s", player_id)
                raise NoWordsAvailable()

            # One active slot per (player, word).
            state = uow.active_games.get(player_id, word.id)
            if state is None:
                state = uow.active_games.save(new_game(player_id, word, self.rules))
            logger.info("player %s started game %s on word %s", player_id, state.id, word.id)
            return to_view(snapshot(state, rules=self.rules))

    def current_game(self, player_id: int) -> GameView:
        with self._uow() as uow:
            self._require_player(uow, player_id)
            state = self._require_active(uow, player_id)
            return to_view(snapshot(state, rules=self.rules))

    def make_guess(self, player_id: int, letter: str) -> GameView:
        try:
            letter = normalize_letter(letter)
        except ValueError:
            logger.warning("player %s sent invalid guess %r", player_id, letter)
            raise InvalidLetter(letter)

        with self._locks.hold(player_id), self._uow() as uow:
            self._require_player(uow, player_id)
            state = self._require_active(uow, player_id)

            result = apply_guess(state, letter, self.rules)
            logger.debug("player %s guessed %r: %s, %s left",
                         player_id, letter, result.outcome.value, result.state.remaining_attempts)

            if result.outcome is Outcome.NO_CHANGE:
                return to_view(result)

            if result.terminal:
                uow.active_games.delete(result.state)
                uow.history.record(
                    player_id=player_id,
                    word=result.state.word,
                    outcome=result.outcome,
                    score=result.score,
                    completed_at=datetime.now(timezone.utc),
                )
                logger.info("player %s finished word %s: %s, score %s",
                            player_id, result.state.word.id, result.outcome.value, result.score)
            else:
                uow.active_games.save(result.state)
            return to_view(result)

    def list_games_for(self, player_id: int) -> List[CompletedGameOut]:
        with self._uow() as uow:
            return [to_history_entry(g) for g in uow.history.list_for_player(player_id)]

    def list_all_games(self) -> List[CompletedGameOut]:
        with self._uow() as uow:
            return [to_history_entry(g) for g in uow.history.list_all()]
