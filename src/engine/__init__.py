from src.engine.matcher import MatchOutcome, match_offer, select_best

__all__ = [
    "MatchOutcome",
    "match_offer",
    "select_best",
]
