"""Environment-level configuration for the tilebot service.

Game constants that are rules of the game (board layout, tile distribution)
live in :mod:`tilebot.engine`; the knobs here are the ones that were never
settled and may differ per deployment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional


def _split(value: str) -> List[str]:
    return [part.strip() for part in value.split(',') if part.strip()]


@dataclass
class Settings:
    """Deployment settings, read once at startup."""

    store: str = 'memory'  # 'memory' | 'file'
    data_dir: str = './data'
    word_list: Optional[str] = None
    lock_timeout_sec: float = 5.0
    bingo_bonus: int = 50
    challenge_penalty_turns: int = 1
    max_scoreless_turns: int = 6
    log_level: str = 'INFO'
    cors_origins: List[str] = field(default_factory=lambda: ['*'])

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from TILEBOT_* environment variables."""
        return cls(
            store=os.environ.get('TILEBOT_STORE', 'memory'),
            data_dir=os.environ.get('TILEBOT_DATA_DIR', './data'),
            word_list=os.environ.get('TILEBOT_WORD_LIST') or None,
            lock_timeout_sec=float(os.environ.get('TILEBOT_LOCK_TIMEOUT_SEC', '5')),
            bingo_bonus=int(os.environ.get('TILEBOT_BINGO_BONUS', '50')),
            challenge_penalty_turns=int(os.environ.get('TILEBOT_CHALLENGE_PENALTY_TURNS', '1')),
            max_scoreless_turns=int(os.environ.get('TILEBOT_MAX_SCORELESS_TURNS', '6')),
            log_level=os.environ.get('TILEBOT_LOG_LEVEL', 'INFO'),
            cors_origins=_split(os.environ.get('TILEBOT_CORS_ORIGINS', '*')),
        )


def get_settings() -> Settings:
    """Convenience accessor for environment settings."""
    return Settings.from_env()
