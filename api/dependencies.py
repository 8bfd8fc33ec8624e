"""
API 共用的 dependency

registry 與高分紀錄在整個 process 內只有一份，測試時用
app.dependency_overrides 換掉
"""
from functools import lru_cache

from database import SessionLocal, get_settings
from core.round_manager import RoundController
from core.session_registry import SessionRegistry
from services.geocoding_service import build_geocoder
from services.location_service import LOCATIONS
from services.score_service import HighScoreStore


@lru_cache()
def get_high_score_store() -> HighScoreStore:
    settings = get_settings()
    return HighScoreStore(key=settings.high_score_key, total_rounds=len(LOCATIONS))


@lru_cache()
def get_registry() -> SessionRegistry:
    settings = get_settings()
    geocoder = build_geocoder(settings)
    high_scores = get_high_score_store()

    def controller_factory() -> RoundController:
        # 回合結束的背景 task 不在 request 範圍內，自己開 session
        return RoundController(
            geocoder,
            high_scores,
            session_factory=SessionLocal,
            advance_delay=settings.advance_delay_ms / 1000,
            half_extent=settings.target_half_extent,
        )

    return SessionRegistry(controller_factory, idle_timeout=settings.session_idle_timeout)
