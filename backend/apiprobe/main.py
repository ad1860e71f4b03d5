import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from apiprobe.api import tests
from apiprobe.config import get_settings
from apiprobe.db.postgres import engine, Base
import apiprobe.models  # noqa: F401  registers tables on Base.metadata

settings = get_settings()

logging.basicConfig(
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    await engine.dispose()


app = FastAPI(
    title="API Probe",
    description="Declarative HTTP endpoint tests with recorded verdicts",
    version="0.1.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(tests.router, prefix="/api/tests", tags=["tests"])


@app.get("/health")
async def health():
    return {"status": "healthy"}
