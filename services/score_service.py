"""
計分服務：計時器、高分比較與高分紀錄的持久化

高分規則：答對題數多者勝；題數相同時，秒數少者勝；完全相同不取代。
"""
import logging
import time
from typing import Callable, Optional

from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session

from services.kv_service import kv_delete, kv_get, kv_set

logger = logging.getLogger(__name__)

NO_SCORE_TEXT = "—"


class ScoreRecord(BaseModel):
    correct: int
    seconds: float


def beats(new: ScoreRecord, stored: Optional[ScoreRecord]) -> bool:
    """
    判斷新成績是否應該取代已存的高分

    規則（字典序）：
    - 沒有既有紀錄：取代
    - 答對較多：取代
    - 答對相同且秒數較少：取代
    - 其他（包括完全相同）：不取代

    範例：
        {5, 10.0} vs {4, 5.0}   -> True
        {4, 9.0}  vs {4, 10.0}  -> True
        {3, 1.0}  vs {4, 100.0} -> False
    """
    if stored is None:
        return True
    if new.correct != stored.correct:
        return new.correct > stored.correct
    return new.seconds < stored.seconds


def format_seconds(seconds: float) -> str:
    return f"{seconds:.1f}s"


class SessionClock:
    """
    一場測驗的計時器

    經過時間永遠是 now - started_at 算出來的，前端用什麼頻率刷新都不影響結果。
    stop() 之後時間凍結，直到下一次 start()。
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._started_at: Optional[float] = None
        self._stopped_at: Optional[float] = None

    @property
    def running(self) -> bool:
        return self._started_at is not None and self._stopped_at is None

    def start(self) -> None:
        self._started_at = self._clock()
        self._stopped_at = None

    def stop(self) -> None:
        if self.running:
            self._stopped_at = self._clock()

    def elapsed_seconds(self) -> float:
        if self._started_at is None:
            return 0.0
        end = self._stopped_at if self._stopped_at is not None else self._clock()
        return end - self._started_at


class HighScoreStore:
    """
    高分紀錄，存在 key-value store 的固定 key 底下

    DB session 由呼叫者提供（API 用 get_db，RoundController 用 session factory）。
    存進去的是 JSON：{"correct": 4, "seconds": 37.2}

    最後一次讀寫的結果會留在記憶體（current()），
    前端輪詢狀態時不需要每次都查資料庫。
    """

    def __init__(self, key: str, total_rounds: int = 5):
        self.key = key
        self.total_rounds = total_rounds
        self._current: Optional[ScoreRecord] = None

    def current(self) -> Optional[ScoreRecord]:
        """最後一次 load / submit / clear 之後的高分（不查資料庫）"""
        return self._current

    def load(self, db: Session) -> Optional[ScoreRecord]:
        """
        讀取高分紀錄

        返回：
            ScoreRecord，沒有紀錄或紀錄損毀時返回 None
        """
        self._current = self._read(db)
        return self._current

    def submit(self, db: Session, record: ScoreRecord) -> bool:
        """
        提交一場測驗的成績，只有打破紀錄時才寫入

        返回：
            True 如果成為新的高分
        """
        stored = self._read(db)
        if not beats(record, stored):
            self._current = stored
            return False

        kv_set(db, self.key, record.model_dump_json())
        self._current = record

        logger.info(f"New high score: {record.correct}/{self.total_rounds} in {record.seconds:.1f}s")
        return True

    def clear(self, db: Session) -> None:
        """無條件刪除高分紀錄（沒有紀錄也不會出錯）"""
        removed = kv_delete(db, self.key)
        self._current = None
        if removed:
            logger.info("High score cleared")

    def display(self, record: Optional[ScoreRecord]) -> str:
        """高分的顯示字串，例如 "4/5 in 37.2s"；沒有紀錄時是 "—" """
        if record is None:
            return NO_SCORE_TEXT
        return f"{record.correct}/{self.total_rounds} in {record.seconds:.1f}s"

    def _read(self, db: Session) -> Optional[ScoreRecord]:
        raw = kv_get(db, self.key)
        if not raw:
            return None
        try:
            return ScoreRecord.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Ignoring malformed high score under '{self.key}': {e}")
            return None
