# FastAPI server implementing the hangman API.
# Provides:
# - POST /api/games/start/{player_id}: start (or resume) a game
# - POST /api/games/guess/{player_id}: guess one letter
# - GET  /api/games/current/{player_id}: view the game in progress
# - GET  /api/games/player/{player_id}: finished games of one player
# - GET  /api/games: all finished games
#
# Run: uvicorn hangman.main:app --host 0.0.0.0 --port 8000

from __future__ import annotations
import logging
from typing import List, Optional
from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from .config import CORS_ORIGINS, LOG_FORMAT, LOG_LEVEL
from .db import SqlUnitOfWork, init_db
from .models import CompletedGameOut, ErrorResponse, GameView, GuessRequest
from .service import (
    GameError, GameOrchestrator, InvalidLetter, NoActiveGame, NoWordsAvailable, PlayerNotFound,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="Hangman", version="1.0.0")

# CORS for dev convenience
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=True,
)

_orchestrator: Optional[GameOrchestrator] = None


def get_orchestrator() -> GameOrchestrator:
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = GameOrchestrator(SqlUnitOfWork)
    return _orchestrator


# Initialize logging and database on startup
@app.on_event("startup")
def startup():
    logging.basicConfig(level=LOG_LEVEL.upper(), format=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    init_db()
    logger.info("hangman server ready")


_ERROR_STATUS = {
    PlayerNotFound: 404,
    NoActiveGame: 404,
    NoWordsAvailable: 409,
    InvalidLetter: 422,
}


def _http_error(e: GameError) -> HTTPException:
    return HTTPException(status_code=_ERROR_STATUS.get(type(e), 400), detail=str(e))


_ERROR_RESPONSES = {404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}}


@app.post("/api/games/start/{player_id}", response_model=GameView, responses=_ERROR_RESPONSES)
def api_start(player_id: int, games: GameOrchestrator = Depends(get_orchestrator)):
    try:
        return games.start_game(player_id)
    except GameError as e:
        raise _http_error(e)


@app.post("/api/games/guess/{player_id}", response_model=GameView, responses=_ERROR_RESPONSES)
def api_guess(player_id: int, req: GuessRequest, games: GameOrchestrator = Depends(get_orchestrator)):
    try:
        return games.make_guess(player_id, req.letter)
    except GameError as e:
        raise _http_error(e)


@app.get("/api/games/current/{player_id}", response_model=GameView, responses=_ERROR_RESPONSES)
def api_current(player_id: int, games: GameOrchestrator = Depends(get_orchestrator)):
    try:
        return games.current_game(player_id)
    except GameError as e:
        raise _http_error(e)


@app.get("/api/games/player/{player_id}", response_model=List[CompletedGameOut])
def api_player_games(player_id: int, games: GameOrchestrator = Depends(get_orchestrator)):
    return games.list_games_for(player_id)


@app.get("/api/games", response_model=List[CompletedGameOut])
def api_all_games(games: GameOrchestrator = Depends(get_orchestrator)):
    return games.list_all_games()
