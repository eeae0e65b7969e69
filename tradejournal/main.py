import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tradejournal import __version__
from tradejournal.api import analytics as analytics_router
from tradejournal.api import charts as charts_router
from tradejournal.api import portfolio as portfolio_router
from tradejournal.api import trades as trades_router
from tradejournal.api import user_data as user_data_router
from tradejournal.config import get_settings
from tradejournal.db.database import Base, engine
from tradejournal.logging_config import configure_logging

# Register every table on Base.metadata
import tradejournal.models  # noqa: F401

logger = logging.getLogger(__name__)

settings = get_settings()

app = FastAPI(title="Trade Journal API", version=__version__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(trades_router.router)
app.include_router(charts_router.router)
app.include_router(portfolio_router.router)
app.include_router(analytics_router.router)
app.include_router(user_data_router.router)


@app.on_event("startup")
async def on_startup():
    """
    Create DB tables on startup (development convenience).
    For production use Alembic migrations instead.
    """
    configure_logging()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured (create_all)")


@app.get("/health")
async def health():
    return {"status": "ok", "version": __version__}
