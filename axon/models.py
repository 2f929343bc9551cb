import uuid
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .database import Base


def _uuid() -> str:
    return uuid.uuid4().hex


class TimestampMixin:
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class User(Base, TimestampMixin):
    __tablename__ = "users"

    # The unique constraints close the race between concurrent registrations;
    # the service-level lookups only exist to produce a precise message.
    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, nullable=False, index=True)
    email = Column(String(100), unique=True, nullable=False, index=True)
    phone = Column(String(20), unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    avatar = Column(Text)
    is_active = Column(Boolean, default=True, nullable=False)

    environments = relationship("Environment", back_populates="user")


class Environment(Base, TimestampMixin):
    __tablename__ = "environments"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    variables = Column(JSON, nullable=False, default=dict)
    is_active = Column(Boolean, default=False, nullable=False)

    user = relationship("User", back_populates="environments")


class RequestFieldsMixin:
    name = Column(String(255), nullable=False, default="Untitled Request")
    url = Column(Text, nullable=False)
    method = Column(String(10), nullable=False, default="GET")
    params = Column(JSON, nullable=False, default=dict)
    headers = Column(JSON, nullable=False, default=dict)
    body = Column(JSON)
    auth = Column(JSON)


class SavedRequest(Base, RequestFieldsMixin, TimestampMixin):
    __tablename__ = "saved_requests"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)


class Favorite(Base, RequestFieldsMixin, TimestampMixin):
    """Denormalized copy of a request; no foreign key to its source."""

    __tablename__ = "favorites"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    folder = Column(String(100), nullable=False, default="Default")


class HistoryEntry(Base):
    __tablename__ = "request_history"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(255))
    url = Column(Text, nullable=False)
    method = Column(String(10), nullable=False)
    headers = Column(JSON, nullable=False, default=dict)
    body = Column(JSON)
    response_status = Column(Integer)
    response_status_text = Column(String(100))
    response_headers = Column(JSON)
    response_body = Column(JSON)
    response_time_ms = Column(Integer)
    error_message = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)


class Collection(Base, TimestampMixin):
    """A folder node of the collection tree.

    The tree is stored as an arena: ``parent_id`` is the only link, and
    ``order_index`` is unique among siblings. Cascading deletes are done in
    ``crud`` by walking descendant ids.
    """

    __tablename__ = "collections"

    id = Column(String(32), primary_key=True, default=_uuid)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    parent_id = Column(String(32), ForeignKey("collections.id"), index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    order_index = Column(Integer, nullable=False, default=0)


class CollectionRequest(Base, TimestampMixin):
    __tablename__ = "collection_requests"

    id = Column(String(32), primary_key=True, default=_uuid)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    collection_id = Column(
        String(32), ForeignKey("collections.id"), nullable=False, index=True
    )
    name = Column(String(255), nullable=False)
    method = Column(String(10), nullable=False, default="GET")
    url = Column(Text, nullable=False, default="")
    headers = Column(JSON, nullable=False, default=dict)
    query_params = Column(JSON, nullable=False, default=dict)
    body = Column(JSON)
    auth = Column(JSON)
    order_index = Column(Integer, nullable=False, default=0)
