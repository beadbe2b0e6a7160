import logging
import eventy.entities  # noqa: F401  registers every model on Base.metadata
from eventy.utils.database import Base, engine

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def init_database():
    """Create the users, events, inventory and sales tables."""
    try:
        logger.info(f"Creating tables on {engine.url.render_as_string(hide_password=True)}")
        Base.metadata.create_all(bind=engine)
        logger.info(f"Created {len(Base.metadata.tables)} tables")

    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise


def drop_database():
    logger.warning("Dropping all tables")
    Base.metadata.drop_all(bind=engine)


if __name__ == "__main__":
    import sys
    if "--drop" in sys.argv:
        drop_database()
    init_database()
