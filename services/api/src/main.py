from contextlib import asynccontextmanager
from pathlib import Path

import conf
import uvicorn
from app_state import build_services, build_store
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from jobs.scheduler import init_scheduler, shutdown_scheduler
from routes.base import router
from routes.errors import register_error_handlers
from utils import log

log.init(conf.get_log_level())
logger = log.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Services may be pre-wired (tests, tools); otherwise build from config
    if not hasattr(app.state, "services"):
        store = build_store()
        logger.info(f"Verifying {type(store).__name__} connection...")
        await store.ping()
        logger.info("Document store connection verified.")
        app.state.services = build_services(store)
    services = app.state.services

    # Initialize auth client if enabled
    if conf.get_auth_enabled():
        from utils import auth

        app.state.auth_client = auth.AuthClient(conf.get_auth_config())
    else:
        logger.warning("Authentication is disabled (set AUTH_ENABLED=true to enable)")

    scheduler_conf = conf.get_scheduler_conf()
    if scheduler_conf.enabled:
        init_scheduler(services.orders, scheduler_conf.interval_minutes)
    else:
        logger.info("Order expiry scheduler disabled")

    yield

    shutdown_scheduler()
    await services.store.close()


app = FastAPI(
    title="Boleka Rentals API",
    version="0.1.0",
    docs_url="/docs",
    lifespan=lifespan,
    debug=conf.get_http_expose_errors(),
)

app.include_router(router)
register_error_handlers(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

if not conf.validate():
    raise ValueError("Invalid configuration.")

http_conf = conf.get_http_conf()
logger.info(f"Starting API on port {http_conf.port}")

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host=http_conf.host,
        port=http_conf.port,
        reload=http_conf.autoreload,
        log_level="info",
        reload_dirs=[str(Path(__file__).parent), "/models", "/clients"],
        log_config=None,
    )
