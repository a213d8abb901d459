from sqlalchemy import (
    Column,
    Integer,
    String,
    JSON,
    DateTime,
    func,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class ClientProfile(Base):
    """Customer profile, keyed by the identity provider's user id."""
    __tablename__ = "client_profiles"

    id = Column(String, primary_key=True, index=True)
    full_name = Column(String, nullable=True)
    email = Column(String, nullable=True)
    phone = Column(String, nullable=True)  # E.164 when written by checkout
    address = Column(String, nullable=True)
    city = Column(String, nullable=True)
    zip_code = Column(String, nullable=True)
    points = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=True)


class PendingSnapshot(Base):
    """
    Key-value row holding a snapshot written right before a payment redirect.

    Keys look like "pendingCheckout:<checkout id>"; each row is read once when
    the browser comes back, then deleted.
    """
    __tablename__ = "pending_snapshots"

    key = Column(String, primary_key=True)
    value = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
