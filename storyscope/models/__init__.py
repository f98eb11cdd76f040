"""SQLAlchemy database models for StoryScope."""

from datetime import datetime

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker
from sqlalchemy.pool import StaticPool

Base = declarative_base()

TASK_STATUSES = ("pending", "running", "completed", "failed")
TASK_TYPES = ("youtube_scrape", "reddit_scrape")


class AutomationTask(Base):
    """A user request to scrape, analyse and storyboard content."""

    __tablename__ = "automation_tasks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    prompt = Column(Text, nullable=False)
    task_type = Column(String(50), nullable=False, default="youtube_scrape")
    status = Column(String(20), nullable=False, default="pending", index=True)
    parameters = Column(JSON)  # Parsed search parameters and request options
    results_summary = Column(Text)
    report = Column(JSON)  # Structured report built after the pipeline run
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    completed_at = Column(DateTime)
    error_message = Column(Text)

    items = relationship(
        "ScrapedItem",
        back_populates="task",
        cascade="all, delete-orphan",
        order_by="ScrapedItem.id",
    )


class ScrapedItem(Base):
    """A scraped video or post together with its AI analysis."""

    __tablename__ = "scraped_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    task_id = Column(
        Integer,
        ForeignKey("automation_tasks.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    video_id = Column(String(50), nullable=False)
    platform = Column(String(20), nullable=False, default="youtube")
    title = Column(Text, nullable=False)
    channel_name = Column(String(200))
    channel_id = Column(String(100))
    description = Column(Text)
    view_count = Column(Integer)
    view_count_text = Column(String(50))
    duration_seconds = Column(Integer)
    upload_date = Column(String(50))
    thumbnail_url = Column(Text)
    video_url = Column(Text, nullable=False)
    tags = Column(JSON)
    category = Column(String(100))
    ai_analysis = Column(JSON)
    sentiment_score = Column(Float)
    scraped_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    task = relationship("AutomationTask", back_populates="items")
    storyboard_items = relationship(
        "StoryboardItem",
        back_populates="item",
        cascade="all, delete-orphan",
        order_by="StoryboardItem.sequence_number",
    )

    __table_args__ = (
        UniqueConstraint("task_id", "video_id", name="uq_scraped_items_task_video"),
    )


class StoryboardItem(Base):
    """One narrated scene of a generated storyboard."""

    __tablename__ = "storyboard_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    item_id = Column(
        Integer,
        ForeignKey("scraped_items.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sequence_number = Column(Integer, nullable=False, index=True)
    scene_description = Column(Text, nullable=False)
    narration_text = Column(Text, nullable=False)
    duration = Column(String(50))
    visual_elements = Column(JSON)
    audio_cues = Column(JSON)
    transition_notes = Column(Text)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    item = relationship("ScrapedItem", back_populates="storyboard_items")


# Database utilities


def create_database_engine(
    database_url: str = "sqlite:///data/storyscope.db", echo: bool = False
):
    """Create SQLAlchemy engine with proper configuration."""
    if database_url == "sqlite://" or database_url.endswith(":memory:"):
        # Single shared connection so every session sees the same database
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=echo,
        )
    elif database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False, "timeout": 30},
            echo=echo,
        )
    else:
        # PostgreSQL configuration for production
        engine = create_engine(
            database_url,
            pool_size=10,
            max_overflow=20,
            pool_timeout=30,
            pool_pre_ping=True,
            echo=echo,
        )

    return engine


def create_tables(engine):
    """Create all tables in the database."""
    Base.metadata.create_all(engine)


def get_session(engine):
    """Get a database session."""
    Session = sessionmaker(bind=engine, expire_on_commit=False)
    return Session()
