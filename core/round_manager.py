"""
Round Controller：管理一場測驗的回合生命週期

職責：
1. 依固定順序出題，每題先做地理編碼，再等待玩家猜測
2. 猜測後鎖定輸入、判定對錯、記錄歷史，延遲一段時間後進入下一回合
3. 最後一回合結束時停止計時並結算高分
4. 重新開始（restart）時讓所有進行中的背景工作失效

並發模型：
- 所有狀態修改都在同一個 asyncio event loop 上進行，不需要鎖
- 每個地理編碼請求都帶有 RequestTag(epoch, round_index, request_id)，
  結果回來時 tag 必須和目前等待中的請求一致，否則直接丟棄
- restart 會讓 epoch 加一，舊 epoch 的延遲換題也會被忽略
"""
import asyncio
import itertools
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Any, List, NamedTuple, Optional, Sequence

from sqlalchemy.orm import Session

from models import RoundPhase
from core.state_machine import RoundStateMachine
from services.geocoding_service import Geocoder, GeocodeResult
from services.history_service import (
    HistoryEntry,
    serialize_history,
    round_prompt,
    final_summary,
    new_high_score_message,
)
from services.location_service import LOCATIONS, Location
from services.region_service import (
    Coordinate,
    TargetRegion,
    DEFAULT_HALF_EXTENT,
    build_target_region,
    evaluate_guess,
    feedback_color,
)
from services.score_service import (
    HighScoreStore,
    ScoreRecord,
    SessionClock,
    NO_SCORE_TEXT,
    format_seconds,
)

logger = logging.getLogger(__name__)

DEFAULT_ADVANCE_DELAY = 1.2

CORRECT_MESSAGE = "Correct. Your instincts are terrifyingly good."
WRONG_MESSAGE = "Wrong. The map does not forgive… but it does reveal."
RESET_MESSAGE = "Reset. Same campus. New fate."
GEOCODE_FAILED_MESSAGE = "Geocoder failed. Check API key + that Geocoding is enabled."
GEOCODE_ERROR_STATUS = "ERROR"


@dataclass
class RoundState:
    """
    一場測驗的可變狀態（只屬於一個 RoundController）

    不變量：
    - 0 <= round_index <= total_rounds
    - answer_locked 只在「已猜測」到「下一題目標就緒」之間為 True
    - current_target 只在等待猜測或剛猜完時不是 None
    """
    total_rounds: int
    round_index: int = 0
    correct_count: int = 0
    answer_locked: bool = False
    current_target: Optional[TargetRegion] = None
    phase: RoundPhase = RoundPhase.AWAITING_GEOCODE


class RequestTag(NamedTuple):
    epoch: int
    round_index: int
    request_id: int


@dataclass(frozen=True)
class GuessFeedback:
    """猜測後顯示在地圖上的內容：猜測標記 + 正確範圍矩形"""
    guess: Coordinate
    bounds: Dict[str, float]
    correct: bool

    @property
    def color(self) -> str:
        return feedback_color(self.correct)


@dataclass(frozen=True)
class GuessOutcome:
    round_number: int
    name: str
    correct: bool


class RoundController:
    """單人測驗的回合狀態機"""

    def __init__(
        self,
        geocoder: Geocoder,
        high_scores: Optional[HighScoreStore] = None,
        session_factory: Optional[Callable[[], Session]] = None,
        locations: Sequence[Location] = LOCATIONS,
        advance_delay: float = DEFAULT_ADVANCE_DELAY,
        half_extent: float = DEFAULT_HALF_EXTENT,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.locations = tuple(locations)
        self.advance_delay = advance_delay
        self.half_extent = half_extent

        self.state = RoundState(total_rounds=len(self.locations))
        self.timer = SessionClock(clock)
        self.history: List[HistoryEntry] = []
        self.feedback: Optional[GuessFeedback] = None
        self.summary: Optional[str] = None
        self.message = ""
        self.geocode_status: Optional[str] = None
        self.new_high_score = False
        self.state_version = 0

        self._geocoder = geocoder
        self._high_scores = high_scores
        self._session_factory = session_factory
        self._epoch = 0
        self._request_ids = itertools.count(1)
        self._pending_tag: Optional[RequestTag] = None
        self._geocode_task: Optional[asyncio.Task] = None
        self._advance_task: Optional[asyncio.Task] = None
        self._tasks = set()

    # ============ 指令 ============

    def start(self) -> None:
        """
        開始（或重新開始）一場測驗

        流程：
        1. epoch + 1，舊的地理編碼結果和延遲換題全部失效
        2. 停止計時器、清空分數、歷史、結算與地圖回饋
        3. 重新計時並載入第 1 回合

        注意：必須在 event loop 內呼叫（會建立背景 task）
        """
        self._epoch += 1
        self._cancel_advance()
        self.timer.stop()

        RoundStateMachine.transition(self.state, RoundPhase.AWAITING_GEOCODE)
        self.state.round_index = 0
        self.state.correct_count = 0
        self.history = []
        self.summary = None
        self.new_high_score = False

        logger.info(f"Starting quiz (epoch {self._epoch}) with {self.state.total_rounds} rounds")

        if self._tracks_high_score():
            with self._session_factory() as db:
                self._high_scores.load(db)

        self.timer.start()
        self._load_round()

    def restart(self) -> None:
        self.start()
        self._set_message(RESET_MESSAGE)

    def retry_geocode(self) -> bool:
        """
        地理編碼失敗後手動重試

        只有在「目前回合停在 AWAITING_GEOCODE 且沒有進行中的請求」時才有作用，
        其他情況都是 no-op。

        返回：
            True 如果送出了新的請求
        """
        if self._epoch == 0:
            return False
        if self.state.phase != RoundPhase.AWAITING_GEOCODE or self._pending_tag is not None:
            return False

        logger.info(f"Retrying geocode for round {self.state.round_index}")
        location = self.locations[self.state.round_index]
        self._set_message(round_prompt(self.state.round_index + 1, location.name))
        self._request_geocode(location)
        return True

    def submit_guess(self, guess: Coordinate, round_index: Optional[int] = None) -> Optional[GuessOutcome]:
        """
        提交一次猜測

        以下情況直接忽略（返回 None，不是錯誤）：
        - 目標尚未就緒（地理編碼還沒回來或失敗）
        - 已經猜過，正在等待換題
        - 呼叫者帶了 round_index，但和目前回合不同（過期的點擊）

        參數：
            guess: 玩家雙擊的座標
            round_index: 前端認為的目前回合（可選）

        返回：
            GuessOutcome，被忽略時返回 None
        """
        target = self.state.current_target
        if target is None or self.state.answer_locked:
            logger.debug(f"Ignoring guess in phase {self.state.phase.value}")
            return None
        if round_index is not None and round_index != self.state.round_index:
            logger.debug(
                f"Ignoring guess for round {round_index}, current round is {self.state.round_index}"
            )
            return None

        self.state.answer_locked = True
        RoundStateMachine.transition(self.state, RoundPhase.LOCKED)

        correct = evaluate_guess(guess, target)
        round_number = self.state.round_index + 1
        if correct:
            self.state.correct_count += 1

        self.feedback = GuessFeedback(guess=guess, bounds=target.bounds(), correct=correct)
        self.history.append(HistoryEntry(round_number=round_number, name=target.name, correct=correct))
        self._set_message(CORRECT_MESSAGE if correct else WRONG_MESSAGE)

        logger.info(
            f"Round {round_number} guess ({guess.lat:.6f}, {guess.lng:.6f}) "
            f"for {target.name}: {'correct' if correct else 'wrong'}"
        )

        self._advance_task = self._spawn(self._advance_later(self._epoch))
        return GuessOutcome(round_number=round_number, name=target.name, correct=correct)

    def close(self) -> None:
        """丟棄這場測驗：停止計時，讓所有背景工作失效"""
        self._epoch += 1
        self._pending_tag = None
        self._cancel_advance()
        self.timer.stop()

    # ============ 查詢 ============

    def elapsed_seconds(self) -> float:
        return self.timer.elapsed_seconds()

    def high_score_text(self) -> str:
        # 用記憶體內的紀錄，輪詢時不查資料庫
        if self._high_scores is None:
            return NO_SCORE_TEXT
        return self._high_scores.display(self._high_scores.current())

    def snapshot(self) -> Dict[str, Any]:
        """前端需要渲染的所有內容"""
        target = self.state.current_target
        finished = self.state.phase == RoundPhase.FINISHED
        round_number = min(self.state.round_index + 1, self.state.total_rounds)
        elapsed = self.elapsed_seconds()

        feedback = None
        if self.feedback is not None:
            feedback = {
                "guess": {"lat": self.feedback.guess.lat, "lng": self.feedback.guess.lng},
                "bounds": self.feedback.bounds,
                "correct": self.feedback.correct,
                "color": self.feedback.color,
            }

        return {
            "state_version": self.state_version,
            "phase": self.state.phase,
            "round_index": self.state.round_index,
            "round_number": round_number,
            "total_rounds": self.state.total_rounds,
            "round_text": f"{round_number} / {self.state.total_rounds}",
            "target_name": None if finished else self.locations[self.state.round_index].name,
            "target_ready": target is not None,
            "answer_locked": self.state.answer_locked,
            "correct_count": self.state.correct_count,
            "message": self.message,
            "geocode_status": self.geocode_status,
            "history": serialize_history(self.history),
            "feedback": feedback,
            "summary": self.summary,
            "new_high_score": self.new_high_score,
            "elapsed_seconds": elapsed,
            "timer_text": format_seconds(elapsed),
            "high_score_text": self.high_score_text(),
        }

    async def settle(self) -> None:
        """等待目前 epoch 的地理編碼與換題全部完成"""
        while True:
            pending = [
                task for task in (self._geocode_task, self._advance_task)
                if task is not None and not task.done()
            ]
            if not pending:
                return
            await asyncio.gather(*pending)

    # ============ 內部流程 ============

    def _load_round(self) -> None:
        self.state.answer_locked = False
        self.state.current_target = None
        self.feedback = None

        location = self.locations[self.state.round_index]
        self._set_message(round_prompt(self.state.round_index + 1, location.name))
        self._request_geocode(location)

    def _request_geocode(self, location: Location) -> None:
        tag = RequestTag(self._epoch, self.state.round_index, next(self._request_ids))
        self._pending_tag = tag
        self.geocode_status = None
        self._geocode_task = self._spawn(self._resolve(tag, location))

    async def _resolve(self, tag: RequestTag, location: Location) -> None:
        try:
            result = await self._geocoder.geocode(location.address)
        except Exception as e:
            logger.error(f"Geocoder raised for '{location.address}': {e}", exc_info=True)
            result = GeocodeResult.failure(GEOCODE_ERROR_STATUS, str(e))
        self._apply_geocode(tag, location, result)

    def _apply_geocode(self, tag: RequestTag, location: Location, result: GeocodeResult) -> None:
        if tag != self._pending_tag or self.state.phase != RoundPhase.AWAITING_GEOCODE:
            logger.info(
                f"Discarding stale geocode for round {tag.round_index} "
                f"(epoch {tag.epoch}, request {tag.request_id})"
            )
            return

        self._pending_tag = None
        self.geocode_status = result.status

        if not result.ok:
            logger.warning(
                f"Geocode failed for '{location.address}': {result.status} {result.error or ''}".rstrip()
            )
            self._set_message(GEOCODE_FAILED_MESSAGE)
            return

        self.state.current_target = build_target_region(location.name, result.location, self.half_extent)
        RoundStateMachine.transition(self.state, RoundPhase.AWAITING_GUESS)
        self._bump()

    async def _advance_later(self, epoch: int) -> None:
        await asyncio.sleep(self.advance_delay)
        if epoch != self._epoch:
            return
        self._advance_task = None
        try:
            self._advance()
        except Exception as e:
            logger.error(f"Failed to advance round {self.state.round_index}: {e}", exc_info=True)

    def _advance(self) -> None:
        self.state.round_index += 1
        if self.state.round_index >= self.state.total_rounds:
            self._finish()
            return

        RoundStateMachine.transition(self.state, RoundPhase.AWAITING_GEOCODE)
        self._load_round()

    def _finish(self) -> None:
        RoundStateMachine.transition(self.state, RoundPhase.FINISHED)
        self.timer.stop()
        self.state.answer_locked = False
        self.state.current_target = None
        self.feedback = None

        seconds = self.timer.elapsed_seconds()
        correct = self.state.correct_count
        total = self.state.total_rounds
        self.summary = final_summary(correct, total, seconds)
        self._set_message(f"Game over. {self.summary}")

        logger.info(f"Quiz finished (epoch {self._epoch}): {correct}/{total} in {seconds:.1f}s")

        if self._tracks_high_score():
            with self._session_factory() as db:
                beaten = self._high_scores.submit(db, ScoreRecord(correct=correct, seconds=seconds))
            if beaten:
                self.new_high_score = True
                self._set_message(new_high_score_message(correct, total, seconds))

    def _tracks_high_score(self) -> bool:
        return self._high_scores is not None and self._session_factory is not None

    def _cancel_advance(self) -> None:
        if self._advance_task is not None and not self._advance_task.done():
            self._advance_task.cancel()
        self._advance_task = None

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _set_message(self, text: str) -> None:
        self.message = text
        self._bump()

    def _bump(self) -> None:
        self.state_version += 1
