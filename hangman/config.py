# Configuration module for server-side constants and defaults.
# Every value can be overridden from the environment.

import os
from pathlib import Path

# Number of wrong guesses allowed before a game is lost.
MAX_ATTEMPTS = int(os.getenv("MAX_ATTEMPTS", "7"))

# Points for revealing the whole word.
FULL_WORD_POINTS = int(os.getenv("FULL_WORD_POINTS", "20"))

# Points per correct letter when a game is lost.
POINTS_PER_LETTER = int(os.getenv("POINTS_PER_LETTER", "1"))

# Character shown in place of a letter that has not been guessed yet.
PLACEHOLDER = "_"

# SQLite DB file path for players, words, active games and history.
DB_PATH = Path(__file__).parent / "hangman.db"
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{DB_PATH}")

# CORS origins (if you deploy the client separately, add its domain here).
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
