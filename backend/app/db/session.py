from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from app.core.config import settings

# PostgreSQL connections need explicit UTF-8 encoding for emoji content
db_url_lower = settings.DATABASE_URL.lower()
is_postgres = "postgresql" in db_url_lower or "postgres" in db_url_lower
is_sqlite = db_url_lower.startswith("sqlite")

connect_args = {}
if is_postgres:
    connect_args["client_encoding"] = "UTF8"
elif is_sqlite:
    # Sessions are handed across FastAPI's threadpool
    connect_args["check_same_thread"] = False

engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    connect_args=connect_args,
    echo=False  # Set to True for SQL query debugging
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base=declarative_base()

def get_db():
    db=SessionLocal()
    try:
        yield db

    finally:
        db.close()
