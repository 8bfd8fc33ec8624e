"""
High Score API Endpoints

職責：
1. 查詢本機高分紀錄
2. 清除高分紀錄（和任何 session 的狀態無關）

只碰資料庫、不碰 RoundController，所以是一般的 def（在 threadpool 執行）
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from database import get_db
from schemas import HighScoreResponse, ScoreRecordResponse
from services.score_service import HighScoreStore, NO_SCORE_TEXT
from api.dependencies import get_high_score_store

router = APIRouter(prefix="/api/high-score", tags=["high-score"])
logger = logging.getLogger(__name__)

CLEARED_MESSAGE = "High score erased. The universe forgets. You don’t have to."


@router.get("", response_model=HighScoreResponse)
def get_high_score(
    db: Session = Depends(get_db),
    store: HighScoreStore = Depends(get_high_score_store)
):
    """
    取得高分紀錄

    返回：
        - record: {correct, seconds}，沒有紀錄（或紀錄損毀）時為 null
        - display: 例如 "4/5 in 37.2s"，沒有紀錄時為 "—"
    """
    try:
        record = store.load(db)
        return HighScoreResponse(
            record=ScoreRecordResponse(**record.model_dump()) if record else None,
            display=store.display(record)
        )

    except Exception as e:
        logger.error(f"Failed to load high score: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.delete("", response_model=HighScoreResponse)
def clear_high_score(
    db: Session = Depends(get_db),
    store: HighScoreStore = Depends(get_high_score_store)
):
    """
    清除高分紀錄

    冪等：沒有紀錄時呼叫也會成功
    """
    try:
        store.clear(db)
        return HighScoreResponse(record=None, display=NO_SCORE_TEXT, message=CLEARED_MESSAGE)

    except Exception as e:
        logger.error(f"Failed to clear high score: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
