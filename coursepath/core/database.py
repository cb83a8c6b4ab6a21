from sqlalchemy import create_engine, text
from sqlalchemy.orm import declarative_base, sessionmaker

from coursepath.core.config import settings

engine = create_engine(settings.DATABASE_URL, pool_pre_ping=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def get_db():
    """
    Dependency to get a database session.
    Ensures the database session is always closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def ensure_vector_extension(connection) -> None:
    """Transcript segment embeddings are pgvector columns; other backends store them as text."""
    if connection.dialect.name == "postgresql":
        connection.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))

# Development helper; production schemas are managed with Alembic.
def create_db_and_tables():
    import coursepath.models  # noqa: F401 - registers every model on Base.metadata
    with engine.begin() as connection:
        ensure_vector_extension(connection)
        Base.metadata.create_all(bind=connection)

if __name__ == "__main__":
    print("Creating database tables based on models...")
    create_db_and_tables()
    print("Database tables created (if they didn't exist).")
