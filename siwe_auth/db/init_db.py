from sqlalchemy import inspect
from sqlalchemy.engine import Engine

from siwe_auth.core.observability import get_logger
from siwe_auth.db.base import Base
from siwe_auth.models.nonce import Nonce

logger = get_logger(__name__)


def setup_nonce_table(engine: Engine) -> bool:
    """Create the nonces table and its indexes if missing. True if it was created."""
    if inspect(engine).has_table(Nonce.__tablename__):
        logger.info("siwe_nonce_table_exists", table=Nonce.__tablename__)
        return False

    Base.metadata.create_all(bind=engine, tables=[Nonce.__table__])
    logger.info("siwe_nonce_table_created", table=Nonce.__tablename__)
    return True
