from __future__ import annotations
from pathlib import Path
from typing import Iterable, Optional, Set

import structlog

LOGGER = structlog.get_logger(__name__)

# Minimal word set for development/demo.
# In production point TILEBOT_WORD_LIST at a full word list (one word per line).

DEFAULT_WORDS = {
    # Two-letter words
    'AA','AB','AD','AE','AG','AH','AI','AL','AM','AN','AR','AS','AT','AW','AX','AY',
    'BA','BE','BI','BO','BY',
    'DO','ED','EF','EH','EL','EM','EN','ER','ES','ET','EX',
    'FA','GO','HA','HE','HI','HM','HO','ID','IF','IN','IS','IT','JO','KA','KI','LA','LI','LO',
    'MA','ME','MI','MM','MO','MU','MY','NA','NE','NO','NU','OD','OE','OF','OH','OI','OM','ON','OP','OR','OS','OW','OX','OY',
    'PA','PE','PI','QI','RE','SH','SI','SO','TA','TI','TO','UH','UM','UN','UP','US','UT','WE','WO','XI','XU','YA','YE','YO',
    # Some longer common words
    'HELLO','WORLD','SCRABBLE','TILE','TILES','BOARD','WORD','WORDS','PLAY','GAME','POINT','QUIZ','JAZZ','FUZZ',
    'PUZZLE','BLANK','CAT','CATS','COAT','DOG','FISH','BIRD','HOUSE','MOUSE','TABLE','CHAIR','ZOO','ECHO','RHYTHM',
    'TEA','EAT','ATE','TAN','ANT','RAT','ART','TAR','STAR','RATS','SEAT','EAST','NOTE','TONE','STONE',
}

class DictionaryService:
    """Word lookup used to check every word a play forms."""

    def __init__(self, words: Optional[Iterable[str]] = None):
        # Store uppercase words
        self._words: Set[str] = {w.strip().upper() for w in (words or DEFAULT_WORDS) if w.strip()}

    @classmethod
    def from_file(cls, path: str) -> "DictionaryService":
        with Path(path).open(encoding='utf-8') as fh:
            service = cls(fh)
        LOGGER.info('dictionary_loaded', path=path, words=len(service))
        return service

    def __len__(self) -> int:
        return len(self._words)

    def is_valid(self, word: str) -> bool:
        if not word:
            return False
        return word.upper() in self._words

    def definition(self, word: str) -> Optional[str]:
        # Placeholder; a real implementation would query a dictionary API
        w = word.upper()
        if w in self._words:
            return f"Definition for {w} is not available offline."
        return None

def build_dictionary(word_list: Optional[str] = None) -> DictionaryService:
    if word_list:
        return DictionaryService.from_file(word_list)
    return DictionaryService()
