from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from database import Base, engine, settings
from api import sessions, high_score
from api.dependencies import get_registry
from services.location_service import get_map_config

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: 在應用啟動時建立資料庫表
    Base.metadata.create_all(bind=engine)
    yield
    # Shutdown: 停掉所有 session 的計時器與背景工作
    app.dependency_overrides.get(get_registry, get_registry)().close_all()


app = FastAPI(
    title="Campus Map Quiz API",
    description="Backend API for the double-click campus geography quiz",
    version="1.0.0",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure this properly in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(sessions.router)
app.include_router(high_score.router)


@app.get("/")
def root():
    return {"message": "Campus Map Quiz API", "status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}


@app.get("/api/map-config")
def map_config():
    return get_map_config(settings.timer_interval_ms, settings.advance_delay_ms)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
