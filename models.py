"""
資料模型

- RoundPhase：回合狀態機的階段
- KeyValueEntry：本機持久化的 key-value store（高分紀錄存在這裡）
"""
import enum

from sqlalchemy import Column, String, Text

from database import Base


class RoundPhase(str, enum.Enum):
    AWAITING_GEOCODE = "awaiting_geocode"
    AWAITING_GUESS = "awaiting_guess"
    LOCKED = "locked"
    FINISHED = "finished"


class KeyValueEntry(Base):
    __tablename__ = "kv_store"

    key = Column(String(128), primary_key=True)
    value = Column(Text, nullable=False)
