from fastapi import FastAPI, Depends, Query, Body, Request
import logging
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from typing import List, Optional, Any
from contextlib import asynccontextmanager
import os
from dotenv import load_dotenv
from datetime import datetime, timezone

from .database import database, get_db
from .errors import PersistenceError, ValidationError
from .schemas import HealthResponse, SightingCreatedResponse, SightingResponse
from .store import DEFAULT_WINDOW_MINUTES, SightingStore
from sqlalchemy.orm import Session

load_dotenv()

logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger("sighting-api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Open the pool once per process; fails fast when DATABASE_URL is missing
    database.connect()
    try:
        yield
    finally:
        database.dispose()


app = FastAPI(title="Sightings API", lifespan=lifespan)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://localhost:5173").split(",")
        if origin.strip()
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    logger.info("Rejected %s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=400, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    logger.info("Rejected %s %s: malformed request", request.method, request.url.path)
    return JSONResponse(status_code=400, content={"error": "Invalid request"})


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError):
    # Detail was logged where it happened; callers only get a generic message
    return JSONResponse(status_code=500, content={"error": "Server error"})


def get_store(db: Session = Depends(get_db)) -> SightingStore:
    return SightingStore(db)


@app.get("/api/health", response_model=HealthResponse)
def health():
    return HealthResponse(status="ok", timestamp=datetime.now(timezone.utc))


@app.post("/api/sightings", response_model=SightingCreatedResponse)
def create_sighting(payload: Any = Body(...), store: SightingStore = Depends(get_store)):
    sighting_id = store.create(payload)
    return SightingCreatedResponse(id=str(sighting_id))


@app.get("/api/sightings/latest", response_model=Optional[SightingResponse])
def get_latest_sighting(store: SightingStore = Depends(get_store)):
    return store.find_latest_approved()


@app.get("/api/sightings", response_model=List[SightingResponse])
def get_recent_sightings(
    minutes: Optional[str] = Query(None, description="Window length in minutes (default 120)"),
    store: SightingStore = Depends(get_store),
):
    return store.find_recent(minutes if minutes is not None else DEFAULT_WINDOW_MINUTES)
