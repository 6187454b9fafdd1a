from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from .db import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, nullable=False, unique=True, index=True)
    password_hash = Column(String, nullable=False)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    country = Column(String, nullable=False)
    # role column for simple RBAC: 'user' or 'admin'
    role = Column(String, nullable=False, default="user", index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    scripts = relationship(
        "Script", back_populates="user", cascade="all, delete-orphan", order_by="Script.id"
    )
    trading_accounts = relationship(
        "TradingAccount", back_populates="user", cascade="all, delete-orphan", order_by="TradingAccount.id"
    )
    sessions = relationship("LoginSession", back_populates="user", cascade="all, delete-orphan")


class Script(Base):
    __tablename__ = "scripts"
    __table_args__ = (
        CheckConstraint("status IN ('running', 'paused', 'stopped')", name="ck_scripts_status"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    code = Column(Text, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String, nullable=False, default="stopped")
    # only stamped when the script enters 'running'
    last_run = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    user = relationship("User", back_populates="scripts")


class TradingAccount(Base):
    __tablename__ = "trading_accounts"
    __table_args__ = (
        CheckConstraint("status IN ('connected', 'disconnected')", name="ck_trading_accounts_status"),
    )

    id = Column(Integer, primary_key=True, index=True)
    server = Column(String, nullable=False)
    username = Column(String, nullable=False)
    # broker credential; never serialized back to clients
    password = Column(String, nullable=False)
    account_number = Column(String, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String, nullable=False, default="disconnected")
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    user = relationship("User", back_populates="trading_accounts")


class LoginSession(Base):
    __tablename__ = "sessions"

    id = Column(String, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)

    user = relationship("User", back_populates="sessions")
