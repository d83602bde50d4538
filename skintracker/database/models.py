"""
SQLAlchemy ORM models for the skin tracker.
"""

import uuid
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    DateTime,
    ForeignKey,
    UniqueConstraint,
    Index,
    JSON,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from skintracker.database.db import Base
from skintracker.utils.datetime_utils import utcnow

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def _uuid() -> str:
    return str(uuid.uuid4())


class User(Base):
    """User accounts with email/username + password authentication."""

    __tablename__ = "users"

    id = Column(String, primary_key=True, default=_uuid)
    email = Column(String, nullable=False, unique=True)  # stored trimmed + lowercase
    username = Column(String, nullable=False, unique=True)
    name = Column(String, nullable=True)  # Display name
    password_hash = Column(String, nullable=True)  # NULL for passwordless accounts
    email_verified = Column(DateTime(timezone=True), nullable=True)  # NULL = unverified
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    verification_tokens = relationship(
        "VerificationToken", back_populates="user", cascade="all, delete-orphan"
    )
    password_reset_tokens = relationship(
        "PasswordResetToken", back_populates="user", cascade="all, delete-orphan"
    )
    collection_entries = relationship(
        "CollectionEntry", back_populates="user", cascade="all, delete-orphan"
    )
    wishlist_entries = relationship(
        "WishlistEntry", back_populates="user", cascade="all, delete-orphan"
    )
    loadouts = relationship("Loadout", back_populates="user", cascade="all, delete-orphan")

    __table_args__ = (
        Index("idx_users_email", "email"),
        Index("idx_users_username", "username"),
    )


class VerificationToken(Base):
    """One-time email verification tokens."""

    __tablename__ = "verification_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    token = Column(String, nullable=False, unique=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    expires_at = Column(String, nullable=False)  # ISO timestamp
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="verification_tokens")

    __table_args__ = (Index("idx_verification_tokens_user_id", "user_id"),)


class PasswordResetToken(Base):
    """One-time password reset tokens."""

    __tablename__ = "password_reset_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    token = Column(String, nullable=False, unique=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    expires_at = Column(String, nullable=False)  # ISO timestamp
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="password_reset_tokens")

    __table_args__ = (Index("idx_password_reset_tokens_user_id", "user_id"),)


class Skin(Base):
    """Catalog skins. Written only by the catalog sync."""

    __tablename__ = "skins"

    id = Column(String, primary_key=True)  # External UUID from the catalog API
    name = Column(String, nullable=False)
    weapon = Column(String, nullable=False)
    tier = Column(String, nullable=False, default="Unknown")  # Content tier UUID or "Unknown"
    cost = Column(Integer, nullable=False, default=0)
    image_url = Column(Text, nullable=True)
    chromas = Column(JSONType, nullable=True)  # [{uuid, fullRender, swatch, ...}]
    levels = Column(JSONType, nullable=True)  # [{streamedVideo, ...}]
    video_url = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    collection_entries = relationship(
        "CollectionEntry", back_populates="skin", cascade="all, delete-orphan"
    )
    wishlist_entries = relationship(
        "WishlistEntry", back_populates="skin", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("idx_skins_name", "name"),
        Index("idx_skins_weapon", "weapon"),
    )


class CollectionEntry(Base):
    """A skin the user owns."""

    __tablename__ = "collection_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    skin_id = Column(String, ForeignKey("skins.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="collection_entries")
    skin = relationship("Skin", back_populates="collection_entries")

    __table_args__ = (
        UniqueConstraint("user_id", "skin_id", name="uq_collection_user_skin"),
        Index("idx_collection_entries_user_id", "user_id"),
    )


class WishlistEntry(Base):
    """A skin the user wants."""

    __tablename__ = "wishlist_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    skin_id = Column(String, ForeignKey("skins.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="wishlist_entries")
    skin = relationship("Skin", back_populates="wishlist_entries")

    __table_args__ = (
        UniqueConstraint("user_id", "skin_id", name="uq_wishlist_user_skin"),
        Index("idx_wishlist_entries_user_id", "user_id"),
    )


class Loadout(Base):
    """Named weapon -> skin preset owned by a user."""

    __tablename__ = "loadouts"

    id = Column(String, primary_key=True, default=_uuid)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(26), nullable=False)
    icon = Column(Text, nullable=True)  # Icon image URL
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="loadouts")
    entries = relationship(
        "LoadoutEntry",
        back_populates="loadout",
        cascade="all, delete-orphan",
        order_by="LoadoutEntry.id",
    )

    __table_args__ = (Index("idx_loadouts_user_id", "user_id"),)


class LoadoutEntry(Base):
    """One weapon slot with an assigned skin inside a loadout."""

    __tablename__ = "loadout_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    loadout_id = Column(String, ForeignKey("loadouts.id", ondelete="CASCADE"), nullable=False)
    weapon = Column(String, nullable=False)
    skin_id = Column(String, ForeignKey("skins.id", ondelete="CASCADE"), nullable=False)

    loadout = relationship("Loadout", back_populates="entries")
    skin = relationship("Skin")

    __table_args__ = (
        UniqueConstraint("loadout_id", "weapon", name="uq_loadout_entry_weapon"),
        Index("idx_loadout_entries_loadout_id", "loadout_id"),
    )
