from .matcher import MATCH_THRESHOLD, best_match, levenshtein, similarity
from .resolver import ModelResolver
from .session_store import SWEEP_INTERVAL_SECONDS, SessionStore

__all__ = [
    "MATCH_THRESHOLD",
    "ModelResolver",
    "SWEEP_INTERVAL_SECONDS",
    "SessionStore",
    "best_match",
    "levenshtein",
    "similarity",
]
