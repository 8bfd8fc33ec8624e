"""
回合狀態機：集中管理所有階段轉換

AWAITING_GEOCODE -> AWAITING_GUESS -> LOCKED -> AWAITING_GEOCODE | FINISHED

重新開始（restart）可以從任何階段回到 AWAITING_GEOCODE，
所以 AWAITING_GEOCODE 是每個階段的合法目標。
"""
import logging

from models import RoundPhase
from core.exceptions import InvalidStateTransition

logger = logging.getLogger(__name__)


class RoundStateMachine:
    """回合階段轉換規則"""

    TRANSITIONS = {
        RoundPhase.AWAITING_GEOCODE: {RoundPhase.AWAITING_GUESS, RoundPhase.AWAITING_GEOCODE},
        RoundPhase.AWAITING_GUESS: {RoundPhase.LOCKED, RoundPhase.AWAITING_GEOCODE},
        RoundPhase.LOCKED: {RoundPhase.AWAITING_GEOCODE, RoundPhase.FINISHED},
        RoundPhase.FINISHED: {RoundPhase.AWAITING_GEOCODE},
    }

    @classmethod
    def can_transition(cls, current: RoundPhase, target: RoundPhase) -> bool:
        return target in cls.TRANSITIONS.get(current, set())

    @classmethod
    def transition(cls, state, target: RoundPhase) -> None:
        """
        把 RoundState 轉換到新的階段

        參數：
            state: RoundState（會被直接修改）
            target: 目標階段

        異常：
            InvalidStateTransition: 不在轉換表內的轉換
        """
        if not cls.can_transition(state.phase, target):
            raise InvalidStateTransition(
                f"Cannot transition round {state.round_index} "
                f"from {state.phase.value} to {target.value}"
            )

        logger.debug(f"Round {state.round_index}: {state.phase.value} -> {target.value}")
        state.phase = target
