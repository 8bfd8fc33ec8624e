"""
Session API Endpoints - 短輪詢版

重點：
1. 所有回合邏輯集中在 RoundController
2. 猜測冪等：鎖定中、目標未就緒、過期回合的猜測都回 accepted=False
3. 前端靠 /state 的 state_version 判斷是否需要重繪，計時器用 elapsed_seconds 自行刷新

所有 endpoint 都是 async，確保 RoundController 只在 event loop 上被修改
"""
from fastapi import APIRouter, Depends, HTTPException
import logging

from schemas import GuessSubmit, GuessResponse, SessionStateResponse, StatusResponse
from core.session_registry import SessionRegistry
from core.exceptions import SessionNotFound
from services.region_service import Coordinate
from api.dependencies import get_registry

router = APIRouter(prefix="/api/sessions", tags=["sessions"])
logger = logging.getLogger(__name__)


def _state_response(session_id: str, controller) -> SessionStateResponse:
    return SessionStateResponse(session_id=session_id, **controller.snapshot())


@router.post("", response_model=SessionStateResponse)
async def create_session(registry: SessionRegistry = Depends(get_registry)):
    """
    開始一場新測驗

    效果：
    - 建立獨立的 RoundController
    - 開始計時，並為第 1 回合送出地理編碼請求
    """
    try:
        session_id, controller = registry.create()
        return _state_response(session_id, controller)

    except Exception as e:
        logger.error(f"Failed to create session: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{session_id}/state", response_model=SessionStateResponse)
async def get_session_state(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    """
    取得目前狀態（前端短輪詢）

    返回：
        - state_version: 狀態有變化時遞增
        - phase: awaiting_geocode / awaiting_guess / locked / finished
        - message, history, feedback, summary: 顯示內容
        - elapsed_seconds / timer_text: 計時器
    """
    try:
        controller = registry.get(session_id)
        return _state_response(session_id, controller)

    except SessionNotFound:
        raise HTTPException(status_code=404, detail="Session not found")
    except Exception as e:
        logger.error(f"Failed to get session state: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{session_id}/guess", response_model=GuessResponse)
async def submit_guess(
    session_id: str,
    guess_data: GuessSubmit,
    registry: SessionRegistry = Depends(get_registry)
):
    """
    提交猜測（地圖雙擊）

    冪等：
    - 目標還沒就緒、已經猜過、round_index 過期 -> accepted=False，不改變任何狀態
    - 被接受的猜測會鎖定輸入，延遲後自動進入下一回合

    參數：
        guess_data: lat, lng（已由前端從螢幕位置換算），round_index（可選）
    """
    try:
        controller = registry.get(session_id)

        outcome = controller.submit_guess(
            Coordinate(lat=guess_data.lat, lng=guess_data.lng),
            round_index=guess_data.round_index
        )

        return GuessResponse(
            accepted=outcome is not None,
            correct=outcome.correct if outcome else None,
            state=_state_response(session_id, controller)
        )

    except SessionNotFound:
        raise HTTPException(status_code=404, detail="Session not found")
    except Exception as e:
        logger.error(f"Failed to submit guess: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{session_id}/restart", response_model=SessionStateResponse)
async def restart_session(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    """
    重新開始（任何階段都可以呼叫）

    效果：
    - 停止計時、清空分數與歷史
    - 進行中的地理編碼結果與延遲換題全部失效
    """
    try:
        controller = registry.get(session_id)
        controller.restart()

        logger.info(f"Session {session_id} restarted")
        return _state_response(session_id, controller)

    except SessionNotFound:
        raise HTTPException(status_code=404, detail="Session not found")
    except Exception as e:
        logger.error(f"Failed to restart session: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{session_id}/geocode/retry", response_model=SessionStateResponse)
async def retry_geocode(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    """
    地理編碼失敗後重試目前回合

    回合沒有卡住時呼叫是 no-op
    """
    try:
        controller = registry.get(session_id)
        controller.retry_geocode()
        return _state_response(session_id, controller)

    except SessionNotFound:
        raise HTTPException(status_code=404, detail="Session not found")
    except Exception as e:
        logger.error(f"Failed to retry geocode: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.delete("/{session_id}", response_model=StatusResponse)
async def delete_session(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    """結束並移除 session"""
    try:
        registry.discard(session_id)
        return StatusResponse(status="ok")

    except SessionNotFound:
        raise HTTPException(status_code=404, detail="Session not found")
    except Exception as e:
        logger.error(f"Failed to delete session: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
