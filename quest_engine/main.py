from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging
import os
from pathlib import Path

from quest_engine.database import engine, Base, SessionLocal
from quest_engine import models  # noqa: F401  registers models with Base
from quest_engine.routes import quests_router, user_router
from quest_engine.seed import seed_default_badges
from quest_engine.services.scheduler_service import start_scheduler, stop_scheduler
from quest_engine.constants import (
    CORS_ALLOWED_ORIGINS, DEFAULT_LOG_DIRECTORY_PROD, DEFAULT_LOG_DIRECTORY_DEV
)

LOG_DIR = os.getenv("QUEST_ENGINE_LOG_DIR", DEFAULT_LOG_DIRECTORY_PROD)
LOG_FILE = os.getenv("QUEST_ENGINE_LOG_FILE", "app.log")

try:
    Path(LOG_DIR).mkdir(parents=True, exist_ok=True)
    log_path = Path(LOG_DIR) / LOG_FILE
except PermissionError:
    # Fallback to local directory if no permissions for /var/log
    LOG_DIR = DEFAULT_LOG_DIRECTORY_DEV
    Path(LOG_DIR).mkdir(parents=True, exist_ok=True)
    log_path = Path(LOG_DIR) / LOG_FILE

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler(log_path),
        logging.StreamHandler()
    ]
)

logger = logging.getLogger("quest_engine")

Base.metadata.create_all(bind=engine)

app = FastAPI(
    title="Quest Engine API",
    description="Daily and weekly quests, streaks and badges",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(quests_router)
app.include_router(user_router)


@app.on_event("startup")
async def startup_event():
    logger.info(f"Quest Engine API started. Logging to: {log_path}")
    db = SessionLocal()
    try:
        seed_default_badges(db)
    except Exception as e:
        logger.error(f"Badge seeding failed: {e}")
    finally:
        db.close()
    start_scheduler()


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Shutting down Quest Engine API")
    stop_scheduler()


# Health check (no auth required)
@app.get("/")
async def root():
    return {"message": "Quest Engine API", "status": "active"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("quest_engine.main:app", host="0.0.0.0", port=8000, reload=False)
