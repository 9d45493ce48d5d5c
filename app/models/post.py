from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text

from app.db.base import Base


class Post(Base):
    __tablename__ = "posts"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    creator_id = Column(String, nullable=False, index=True)
    content = Column(Text, nullable=True)
    media_url = Column(String, nullable=True)
    visibility = Column(String, nullable=False, default="public")  # public / followers / subscribers
    is_nsfw = Column(Boolean, nullable=False, default=False)
    unlock_price = Column(Integer, nullable=False, default=0)      # Stars, 0 = free
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
