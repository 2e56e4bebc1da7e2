"""
Focus room: pomodoro cycle.

The countdown runs on the client; the server only records phase
completions. Finishing a focus phase earns XP and starts a break,
finishing a break starts the next focus phase.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from db_stores import ProfileStoreDB
from models import XP_AWARDS


class Phase(str, enum.Enum):
    FOCUS = "focus"
    BREAK = "break"


PHASE_MINUTES = {
    Phase.FOCUS: 25,
    Phase.BREAK: 5,
}


@dataclass
class PhaseResult:
    completed: Phase
    next_phase: Phase
    next_minutes: int
    xp_earned: int = 0
    total_xp: int | None = None

    def to_dict(self) -> dict:
        return {
            "completed": self.completed.value,
            "next_phase": self.next_phase.value,
            "next_minutes": self.next_minutes,
            "xp_earned": self.xp_earned,
            "total_xp": self.total_xp,
        }


def complete_phase(user_id: int, phase: Phase | str) -> PhaseResult:
    phase = Phase(phase)
    if phase is Phase.FOCUS:
        amount = XP_AWARDS["pomodoro_complete"]
        total = ProfileStoreDB(user_id).increment_xp(amount, "pomodoro_complete")
        return PhaseResult(phase, Phase.BREAK, PHASE_MINUTES[Phase.BREAK], amount, total)
    return PhaseResult(phase, Phase.FOCUS, PHASE_MINUTES[Phase.FOCUS])
