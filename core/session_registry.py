"""
Session Registry：同一個 process 內所有進行中的測驗

每個 session 對應一個獨立的 RoundController，彼此不共享回合狀態，
只共享同一份高分紀錄。

瀏覽器關掉分頁時不會通知後端，所以閒置超過 idle_timeout 秒
（期間沒有任何 get）的 session 會在下一次 create / get 時被關閉並移除。

所有操作都在 event loop 上執行（session API 全部是 async），不需要鎖。
"""
import logging
import time
import uuid
from typing import Callable, Dict, Tuple

from core.exceptions import SessionNotFound
from core.round_manager import RoundController

logger = logging.getLogger(__name__)

DEFAULT_IDLE_TIMEOUT = 30 * 60


class SessionRegistry:
    """RoundController 的註冊表"""

    def __init__(
        self,
        controller_factory: Callable[[], RoundController],
        idle_timeout: float = DEFAULT_IDLE_TIMEOUT,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._controller_factory = controller_factory
        self._idle_timeout = idle_timeout
        self._clock = clock
        self._sessions: Dict[str, RoundController] = {}
        self._last_seen: Dict[str, float] = {}

    def create(self) -> Tuple[str, RoundController]:
        """
        建立並開始一場新測驗

        返回：
            (session_id, RoundController) tuple
        """
        self.evict_idle()

        session_id = str(uuid.uuid4())
        controller = self._controller_factory()
        self._sessions[session_id] = controller
        self._last_seen[session_id] = self._clock()
        controller.start()

        logger.info(f"Created session {session_id}")
        return session_id, controller

    def get(self, session_id: str) -> RoundController:
        """
        取得 session，並更新最後存取時間

        異常：
            SessionNotFound: session 不存在（或已因閒置被移除）
        """
        self.evict_idle()

        controller = self._sessions.get(session_id)
        if controller is None:
            raise SessionNotFound(session_id)
        self._last_seen[session_id] = self._clock()
        return controller

    def discard(self, session_id: str) -> None:
        """
        結束並移除一個 session

        異常：
            SessionNotFound: session 不存在
        """
        controller = self._sessions.pop(session_id, None)
        if controller is None:
            raise SessionNotFound(session_id)
        self._last_seen.pop(session_id, None)
        controller.close()
        logger.info(f"Discarded session {session_id}")

    def evict_idle(self) -> int:
        """
        關閉並移除閒置太久的 session

        返回：
            被移除的 session 數量
        """
        cutoff = self._clock() - self._idle_timeout
        stale = [sid for sid, seen in self._last_seen.items() if seen < cutoff]
        for session_id in stale:
            self._sessions.pop(session_id).close()
            del self._last_seen[session_id]
            logger.info(f"Evicted idle session {session_id}")
        return len(stale)

    def close_all(self) -> None:
        for controller in self._sessions.values():
            controller.close()
        self._sessions.clear()
        self._last_seen.clear()

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
