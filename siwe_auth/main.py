from fastapi import FastAPI

from siwe_auth.api.router import api_router
from siwe_auth.core.config import get_settings
from siwe_auth.core.deps import get_siwe_options
from siwe_auth.core.observability import configure_logging, get_logger
from siwe_auth.db.init_db import setup_nonce_table
from siwe_auth.db.session import get_engine

app = FastAPI(title="SIWE Auth")
app.include_router(api_router, prefix="/api")

logger = get_logger(__name__)


@app.on_event("startup")
def startup_validate_options():
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_json)

    # bad options must stop the process here, not fail the first login
    options = get_siwe_options()
    if options.prevent_replay and settings.nonce_backend == "sql":
        setup_nonce_table(get_engine())

    logger.info(
        "siwe_options_validated",
        domain=options.domain,
        version=options.version,
        prevent_replay=options.prevent_replay,
        nonce_backend=settings.nonce_backend,
    )
