from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError
from app.db.session import engine, Base
from app.core.config import settings
from app.utils.logger import configure_logging, get_logger

# Import all models before create_all
from app.models import user, conversation, participant, message, read_marker  # noqa: F401

logger = get_logger(__name__)


def create_missing_tables():
    logger.info("Creating missing tables")
    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Tables created (if missing)")
    except SQLAlchemyError:
        logger.exception("Error creating tables")
        raise


def add_missing_columns():
    """Add columns that exist on the models but not yet in the database"""
    inspector = inspect(engine)
    existing_tables = inspector.get_table_names()
    with engine.connect() as conn:
        for table_name, model_table in Base.metadata.tables.items():
            if table_name not in existing_tables:
                logger.warning("Table not found in DB, creating it", table=table_name)
                model_table.create(bind=engine, checkfirst=True)
                continue

            existing_cols = [col["name"] for col in inspector.get_columns(table_name)]
            for col_name, col in model_table.columns.items():
                if col_name in existing_cols:
                    continue
                sql = f'ALTER TABLE "{table_name}" ADD COLUMN "{col_name}" {col.type.compile(engine.dialect)}'
                logger.info("Adding column", table=table_name, column=col_name)
                try:
                    conn.execute(text(sql))
                    conn.commit()
                except SQLAlchemyError:
                    conn.rollback()
                    logger.exception("Error adding column", table=table_name, column=col_name)


if __name__ == "__main__":
    configure_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
    logger.info("Syncing database")
    create_missing_tables()
    add_missing_columns()
    logger.info("Database sync complete")
