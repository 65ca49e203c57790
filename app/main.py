from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.routes import research
from app.config import settings
from app.services.broadcaster import Broadcaster
from app.services.sessions import SessionManager


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.broadcaster = Broadcaster()
    app.state.sessions = SessionManager(app.state.broadcaster)
    yield
    await app.state.sessions.shutdown()


app = FastAPI(
    title="research-stream",
    description="Tool-augmented research agent with streamed answers",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routes
app.include_router(research.router)


@app.get("/api/health")
async def health():
    return {"status": "ok", "service": "researchstream"}
