# SQLite data layer using SQLAlchemy for players, the word pool, active games
# and finished-game history.
#
# Tables reference each other by explicit ids only; there are no ORM
# relationships or cascades. The repositories below all share the session of
# one SqlUnitOfWork, which commits on success and rolls back on error.

from __future__ import annotations
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Iterable, List, Optional
from sqlalchemy import (
    Boolean, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint,
    create_engine, delete, func, update,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.sql import select
from .config import DATABASE_URL, DB_PATH
from .game import CompletedGame, GameState, Outcome, Player, SecretWord, decode_letters, encode_letters

logger = logging.getLogger(__name__)

Base = declarative_base()


class PlayerRow(Base):
    __tablename__ = "players"
    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)


class WordRow(Base):
    __tablename__ = "words"
    id = Column(Integer, primary_key=True)
    word = Column(String, nullable=False, unique=True)
    used = Column(Boolean, nullable=False, default=False, index=True)


class ActiveGameRow(Base):
    __tablename__ = "active_games"
    __table_args__ = (UniqueConstraint("player_id", "word_id", name="uq_active_player_word"),)
    id = Column(Integer, primary_key=True)
    player_id = Column(Integer, ForeignKey("players.id"), index=True, nullable=False)
    word_id = Column(Integer, ForeignKey("words.id"), nullable=False)
    attempted_letters = Column(String, nullable=False, default="")  # "A,C,X"
    remaining_attempts = Column(Integer, nullable=False)
    started_at = Column(DateTime(timezone=True), nullable=False)


class GameRow(Base):
    __tablename__ = "games"
    id = Column(Integer, primary_key=True)
    player_id = Column(Integer, ForeignKey("players.id"), index=True, nullable=False)
    word_id = Column(Integer, ForeignKey("words.id"), nullable=False)
    outcome = Column(String, nullable=False)  # "WON"/"LOST"
    score = Column(Integer, nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=False)


def as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo; stored timestamps are always UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def make_engine(url: str = DATABASE_URL) -> Engine:
    kwargs = {}
    if url.startswith("sqlite"):
        # FastAPI runs sync endpoints in a threadpool.
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    return create_engine(url, echo=False, future=True, **kwargs)


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


_engine = make_engine()
SessionLocal = make_session_factory(_engine)


def init_db(engine: Optional[Engine] = None):
    if engine is None:
        DB_PATH.parent.mkdir(parents=True, exist_ok=True)
        engine = _engine
    Base.metadata.create_all(engine)


def add_player(name: str, session_factory: sessionmaker = SessionLocal) -> Player:
    with session_factory() as s:
        row = PlayerRow(name=name)
        s.add(row)
        s.commit()
        return Player(id=row.id, name=row.name)


def add_words(words: Iterable[str], session_factory: sessionmaker = SessionLocal) -> List[SecretWord]:
    with session_factory() as s:
        rows = [WordRow(word=w, used=False) for w in words]
        s.add_all(rows)
        s.commit()
        return [SecretWord(id=r.id, text=r.word) for r in rows]


class SqlPlayers:
    def __init__(self, session: Session):
        self.session = session

    def get(self, player_id: int) -> Optional[Player]:
        row = self.session.get(PlayerRow, player_id)
        if row is None:
            return None
        return Player(id=row.id, name=row.name)


class SqlWords:
    def __init__(self, session: Session):
        self.session = session

    def reserve_random_unused_word(self) -> Optional[SecretWord]:
        # Claim with a conditional update; if another transaction took the
        # word first, pick again until the pool is empty.
        while True:
            row = self.session.execute(
                select(WordRow.id, WordRow.word)
                .where(WordRow.used.is_(False))
                .order_by(func.random())
                .limit(1)
            ).first()
            if row is None:
                return None
            claimed = self.session.execute(
                update(WordRow)
                .where(WordRow.id == row.id, WordRow.used.is_(False))
                .values(used=True)
                .execution_options(synchronize_session=False)
            )
            if claimed.rowcount == 1:
                logger.info("reserved word %s", row.id)
                return SecretWord(id=row.id, text=row.word)
            logger.debug("word %s claimed concurrently, retrying", row.id)


class SqlActiveGames:
    def __init__(self, session: Session):
        self.session = session

    @staticmethod
    def _query():
        return select(ActiveGameRow, WordRow.word).join(WordRow, WordRow.id == ActiveGameRow.word_id)

    @staticmethod
    def _to_state(row) -> Optional[GameState]:
        if row is None:
            return None
        game, text = row
        return GameState(
            id=game.id,
            player_id=game.player_id,
            word=SecretWord(id=game.word_id, text=text),
            attempted_letters=decode_letters(game.attempted_letters),
            remaining_attempts=game.remaining_attempts,
            started_at=as_utc(game.started_at),
        )

    def find_for_player(self, player_id: int) -> Optional[GameState]:
        row = self.session.execute(
            self._query()
            .where(ActiveGameRow.player_id == player_id)
            .order_by(ActiveGameRow.started_at.desc(), ActiveGameRow.id.desc())
            .limit(1)
        ).first()
        return self._to_state(row)

    def get(self, player_id: int, word_id: int) -> Optional[GameState]:
        row = self.session.execute(
            self._query().where(
                ActiveGameRow.player_id == player_id,
                ActiveGameRow.word_id == word_id,
            )
        ).first()
        return self._to_state(row)

    def save(self, state: GameState) -> GameState:
        letters = encode_letters(state.attempted_letters)
        if state.id is None:
            row = ActiveGameRow(
                player_id=state.player_id,
                word_id=state.word.id,
                attempted_letters=letters,
                remaining_attempts=state.remaining_attempts,
                started_at=state.started_at,
            )
            self.session.add(row)
            self.session.flush()
            return replace(state, id=row.id)

        row = self.session.get(ActiveGameRow, state.id)
        if row is None:
            raise LookupError(f"active game {state.id} no longer exists")
        row.attempted_letters = letters
        row.remaining_attempts = state.remaining_attempts
        self.session.flush()
        return state

    def delete(self, state: GameState) -> None:
        self.session.execute(delete(ActiveGameRow).where(ActiveGameRow.id == state.id))


class SqlHistory:
    def __init__(self, session: Session):
        self.session = session

    def _query(self):
        return (
            select(GameRow, PlayerRow.name, WordRow.word)
            .join(PlayerRow, PlayerRow.id == GameRow.player_id)
            .join(WordRow, WordRow.id == GameRow.word_id)
            .order_by(GameRow.completed_at, GameRow.id)
        )

    @staticmethod
    def _to_record(game: GameRow, player_name: str, word: str) -> CompletedGame:
        return CompletedGame(
            id=game.id,
            player_id=game.player_id,
            player_name=player_name,
            word=word,
            outcome=Outcome(game.outcome),
            score=game.score,
            completed_at=as_utc(game.completed_at),
        )

    def record(self, player_id: int, word: SecretWord, outcome: Outcome, score: int,
               completed_at: datetime) -> CompletedGame:
        if not outcome.terminal:
            raise ValueError(f"cannot record a game with outcome {outcome.value}")
        # The word was reserved on start; keep it marked in case it was reset.
        self.session.execute(
            update(WordRow)
            .where(WordRow.id == word.id)
            .values(used=True)
            .execution_options(synchronize_session=False)
        )
        row = GameRow(
            player_id=player_id,
            word_id=word.id,
            outcome=outcome.value,
            score=score,
            completed_at=completed_at,
        )
        self.session.add(row)
        self.session.flush()
        player = self.session.get(PlayerRow, player_id)
        return self._to_record(row, player.name if player else "", word.text)

    def list_for_player(self, player_id: int) -> List[CompletedGame]:
        rows = self.session.execute(self._query().where(GameRow.player_id == player_id)).all()
        return [self._to_record(*r) for r in rows]

    def list_all(self) -> List[CompletedGame]:
        rows = self.session.execute(self._query()).all()
        return [self._to_record(*r) for r in rows]


class SqlUnitOfWork:
    """One transaction: commit when the block exits cleanly, roll back otherwise."""

    def __init__(self, session_factory: sessionmaker = SessionLocal):
        self._session_factory = session_factory

    def __enter__(self) -> "SqlUnitOfWork":
        self.session = self._session_factory()
        self.players = SqlPlayers(self.session)
        self.words = SqlWords(self.session)
        self.active_games = SqlActiveGames(self.session)
        self.history = SqlHistory(self.session)
        return self

    def __exit__(self, exc_type, exc, tb):
        try:
            if exc_type is None:
                self.session.commit()
            else:
                self.session.rollback()
        finally:
            self.session.close()
        return False
