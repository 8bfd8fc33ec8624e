"""
Round history service.

Builds the per-session round history and the end-of-game texts so the
frontend can render them straight from the server.
"""
from dataclasses import dataclass
from typing import List, Dict, Any


@dataclass(frozen=True)
class HistoryEntry:
    round_number: int
    name: str
    correct: bool

    @property
    def label(self) -> str:
        return f"{'✅' if self.correct else '❌'} {self.name}"


def serialize_history(history: List[HistoryEntry]) -> List[Dict[str, Any]]:
    """
    Return the history in play order, one entry per answered round.
    """
    return [
        {
            "round_number": entry.round_number,
            "name": entry.name,
            "correct": entry.correct,
            "label": entry.label,
        }
        for entry in history
    ]


def round_prompt(round_number: int, name: str) -> str:
    return f"Round {round_number}: Find {name}. Double-click your guess."


def final_summary(correct: int, total: int, seconds: float) -> str:
    return f"Final Score: {correct} / {total} in {seconds:.1f}s"


def new_high_score_message(correct: int, total: int, seconds: float) -> str:
    return f"New high score: {correct}/{total} in {seconds:.1f}s. Respect."
