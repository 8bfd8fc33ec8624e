from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool
from pydantic_settings import BaseSettings
from functools import lru_cache, wraps
import logging

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    database_url: str = "sqlite:///./map_quiz.db"
    log_level: str = "INFO"

    # 地理編碼
    geocoder: str = "google"
    google_maps_api_key: str = ""
    geocode_url: str = "https://maps.googleapis.com/maps/api/geocode/json"
    geocode_timeout: float = 5.0

    # 回合節奏
    advance_delay_ms: int = 1200
    timer_interval_ms: int = 100

    # 閒置多久（秒）的 session 會被移除
    session_idle_timeout: float = 1800.0

    # 約 30 公尺（校園緯度）
    target_half_extent: float = 0.00028

    high_score_key: str = "csunMapQuizHighScore"

    class Config:
        env_file = ".env"


@lru_cache()
def get_settings():
    return Settings()


settings = get_settings()


def _engine_options(url: str) -> dict:
    """
    依資料庫 URL 決定 engine 參數

    SQLite 需要 check_same_thread=False（FastAPI 會跨執行緒存取）
    In-memory SQLite 每條連線都是獨立的資料庫，所以必須共用同一條連線（StaticPool）
    """
    if not url.startswith("sqlite"):
        return {"pool_pre_ping": True}

    options = {"connect_args": {"check_same_thread": False}}
    if url in ("sqlite://", "sqlite:///:memory:"):
        options["poolclass"] = StaticPool
    else:
        options["pool_pre_ping"] = True
    return options


engine = create_engine(settings.database_url, **_engine_options(settings.database_url))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    """
    FastAPI dependency：提供 Database Session

    使用 yield 確保 session 在請求結束後會被關閉
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def transactional(func):
    """
    Transaction decorator：確保資料庫操作的原子性

    使用方式：
        @transactional
        def kv_set(db: Session, key: str, value: str):
            # 所有 DB 操作都在一個 transaction 內
            db.merge(KeyValueEntry(key=key, value=value))
            # 不需要手動 commit，decorator 會處理

    如果函式內發生異常：
        - 自動 rollback
        - 異常會被重新拋出（讓上層處理）

    注意：
        - 第一個參數必須是 db: Session
        - 不要在函式內手動 commit（decorator 會處理）
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        # 找出 db session（可能在 args 或 kwargs）
        db = None
        if args and isinstance(args[0], Session):
            db = args[0]
        elif 'db' in kwargs:
            db = kwargs['db']

        if db is None:
            raise ValueError(
                f"@transactional requires 'db: Session' as first argument, "
                f"but got args={args}, kwargs={kwargs}"
            )

        try:
            result = func(*args, **kwargs)
            db.commit()
            return result
        except Exception as e:
            logger.error(f"Transaction failed in {func.__name__}: {e}", exc_info=True)
            db.rollback()
            raise

    return wrapper
