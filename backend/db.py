from sqlalchemy import (
    Column,
    DateTime,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    text,
)

from config import load_settings

DATABASE_URL = load_settings().database_url

# sqlite connections get shared between the event loop and the threadpool
_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, future=True, connect_args=_connect_args)

metadata = MetaData()

# A row here means the user has completed onboarding
user_preferences = Table(
    "user_preferences",
    metadata,
    Column("user_id", Integer, primary_key=True, autoincrement=False),
    Column("crypto_assets", Text, nullable=False, default="[]"),
    Column("investor_type", String(64), nullable=False, default=""),
    Column("content_types", Text, nullable=False, default="[]"),
    Column("updated_at", DateTime, nullable=False),
)

user_votes = Table(
    "user_votes",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, nullable=False),
    Column("section", String(32), nullable=False),
    Column("item_id", String(512), nullable=False),
    Column("vote", String(8), nullable=False),
    Column("updated_at", DateTime, nullable=False),
    # one live vote per user per item
    UniqueConstraint("user_id", "section", "item_id", name="uq_user_votes_user_section_item"),
)


def init_db():
    metadata.create_all(engine)


def db_check():
    with engine.connect() as conn:
        return conn.execute(text("SELECT 1")).scalar()
