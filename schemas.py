"""
API request / response schemas
"""
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from models import RoundPhase


class GuessSubmit(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    # 前端認為的目前回合（0 起算），對不上時猜測會被忽略
    round_index: Optional[int] = None


class LatLng(BaseModel):
    lat: float
    lng: float


class FeedbackResponse(BaseModel):
    guess: LatLng
    bounds: Dict[str, float]
    correct: bool
    color: str


class HistoryEntryResponse(BaseModel):
    round_number: int
    name: str
    correct: bool
    label: str


class SessionStateResponse(BaseModel):
    session_id: str
    state_version: int
    phase: RoundPhase
    round_index: int
    round_number: int
    total_rounds: int
    round_text: str
    target_name: Optional[str] = None
    target_ready: bool
    answer_locked: bool
    correct_count: int
    message: str
    geocode_status: Optional[str] = None
    history: List[HistoryEntryResponse]
    feedback: Optional[FeedbackResponse] = None
    summary: Optional[str] = None
    new_high_score: bool
    elapsed_seconds: float
    timer_text: str
    high_score_text: str


class GuessResponse(BaseModel):
    accepted: bool
    correct: Optional[bool] = None
    state: SessionStateResponse


class ScoreRecordResponse(BaseModel):
    correct: int
    seconds: float


class HighScoreResponse(BaseModel):
    record: Optional[ScoreRecordResponse] = None
    display: str
    message: Optional[str] = None


class StatusResponse(BaseModel):
    status: str
