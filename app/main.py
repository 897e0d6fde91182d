"""
FastAPI Main Application Module.

Dieses Modul enthält die FastAPI-App mit Lifecycle-Management
(Logging, Datenbank, ClickHouse-Client) und globalem Fehler-Handling.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.gzip import GZipMiddleware

from app.config import config
from app.clickhouse import close_clickhouse
from app.database import init_db
from app.errors import get_500_detail
from app.logging_config import setup_logging
from app.middleware.request_id import RequestIDMiddleware
from app.services.deployment_alerts import get_alerts_scheduler, shutdown_alerts_scheduler

# Logger konfigurieren (Level/Format werden in lifespan aus config gesetzt)
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifecycle-Manager für FastAPI-App.

    Startup: Logging, Tabellen, Alert-Scheduler.
    Shutdown: Alert-Scheduler stoppen, ClickHouse-HTTP-Client schließen.
    """
    setup_logging(log_level=config.LOG_LEVEL, log_json=config.LOG_JSON)
    init_db()
    get_alerts_scheduler().start()
    logger.info("Run-Control-Plane v%s gestartet (%s)", config.VERSION, config.ENVIRONMENT)
    yield
    shutdown_alerts_scheduler()
    await close_clickhouse()
    logger.info("Run-Control-Plane beendet")


# In Produktion: OpenAPI-Docs deaktivieren
_docs_url = None if config.ENVIRONMENT == "production" else "/docs"
_redoc_url = None if config.ENVIRONMENT == "production" else "/redoc"
_openapi_url = None if config.ENVIRONMENT == "production" else "/openapi.json"

app = FastAPI(
    title="Run Control Plane",
    description="Run-Listen über ClickHouse mit Abgleich gegen den relationalen Store",
    version=config.VERSION,
    lifespan=lifespan,
    docs_url=_docs_url,
    redoc_url=_redoc_url,
    openapi_url=_openapi_url,
)


async def _unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Einheitliche 500-Antwort via get_500_detail, inklusive Request-ID."""
    logger.exception("Unhandled exception: %s", exc)
    content = {"detail": get_500_detail(exc)}
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        content["request_id"] = request_id
    return JSONResponse(status_code=500, content=content)


app.add_exception_handler(Exception, _unhandled_exception_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# GZip-Kompression für große Run-Listen
app.add_middleware(GZipMiddleware, minimum_size=500)

# Request-ID: zuletzt hinzufügen = läuft zuerst (outermost)
app.add_middleware(RequestIDMiddleware)


@app.get("/health")
@app.get("/api/health")
async def health_check() -> JSONResponse:
    """
    Liveness-Check: Prozess lebt, ohne externe Abhängigkeiten.
    """
    return JSONResponse(
        content={
            "status": "healthy",
            "version": config.VERSION,
            "environment": config.ENVIRONMENT,
        }
    )


# Alle API-Router haben /api-Präfix
from app.api import ROUTERS

for router in ROUTERS:
    app.include_router(router, prefix="/api")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True
    )
