import logging
import os
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from pymongo.errors import PyMongoError

import config
from admin_routes import router as admin_router
from database import db, ensure_indexes
from errors import register_exception_handlers
from log_routes import router as log_router
from product_routes import router as product_router
from stats_routes import router as stats_router
from user_routes import router as user_router

logging.basicConfig(
    level=config.LOG_LEVEL.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {config.PROJECT_NAME} ({config.ENVIRONMENT}, stats source: {config.STATS_SOURCE})")
    try:
        ensure_indexes(db)
    except PyMongoError as e:
        logger.warning(f"Could not ensure indexes, database unavailable: {e}")
    yield
    logger.info("Shutting down")


app = FastAPI(title=config.PROJECT_NAME, version=config.VERSION, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - started) * 1000
    logger.info(f"{request.method} {request.url.path} {response.status_code} {duration_ms:.1f}ms")
    return response


app.include_router(log_router)
app.include_router(stats_router)
app.include_router(admin_router)
app.include_router(product_router)
app.include_router(user_router)

os.makedirs(config.UPLOAD_DIR, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=config.UPLOAD_DIR, check_dir=False), name="uploads")


@app.get("/")
def read_root():
    return {
        "success": True,
        "message": f"{config.PROJECT_NAME} is running",
        "version": config.VERSION,
        "environment": config.ENVIRONMENT,
    }


@app.get("/health")
def health():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set (using default)",
        "database_name": config.DATABASE_NAME,
        "stats_source": config.STATS_SOURCE,
        "collections": [],
    }
    try:
        response["collections"] = db.list_collection_names()[:10]
        response["database"] = "✅ Connected & Working"
    except PyMongoError as e:
        response["database"] = f"⚠️ Connection error: {str(e)[:50]}"
    return response


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
