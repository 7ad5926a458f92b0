from sqlalchemy import JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSON_TYPE = JSON().with_variant(JSONB(), "postgresql")

Base = declarative_base()
