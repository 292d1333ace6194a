# Pydantic models and data structures for API IO.

from __future__ import annotations
from datetime import datetime
from pydantic import BaseModel, Field, field_validator
from typing import List, Literal
from .game import normalize_letter

GameStatus = Literal["NO_CHANGE", "IN_PROGRESS", "WON", "LOST"]


class GuessRequest(BaseModel):
    letter: str = Field(..., description="Single letter to guess, any case")

    @field_validator("letter")
    @classmethod
    def validate_letter(cls, v: str) -> str:
        return normalize_letter(v)


class GameView(BaseModel):
    player_id: int
    hidden_word: str = Field(..., description="Word with unguessed letters masked")
    attempted_letters: List[str]
    remaining_attempts: int
    complete: bool
    score: int = Field(..., description="Final score, or the provisional score of a live game")
    status: GameStatus


class CompletedGameOut(BaseModel):
    id: int
    player_id: int
    player_name: str
    word: str
    outcome: Literal["WON", "LOST"]
    score: int
    completed_at: datetime


class ErrorResponse(BaseModel):
    detail: str
