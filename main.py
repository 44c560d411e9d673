import logging
import os

from dotenv import load_dotenv

# Load environment variables from .env file before the app modules read them
load_dotenv()

from fastapi import FastAPI  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402

from site_issues.database.config import engine, Base  # noqa: E402
from site_issues.errors import register_exception_handlers  # noqa: E402
from site_issues.middleware.timing import timing_middleware  # noqa: E402
from site_issues.routes import issues_router  # noqa: E402
from contextlib import asynccontextmanager  # noqa: E402

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    # Shutdown: Dispose of the engine
    await engine.dispose()

app = FastAPI(title="Site Issue Tracker", lifespan=lifespan)

app.middleware("http")(timing_middleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(levelname)s | %(name)s | %(message)s",
)

register_exception_handlers(app)

app.include_router(issues_router)


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}
