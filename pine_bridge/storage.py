"""Persistence for users, scripts, trading accounts and login sessions.

`Storage` is the capability set the HTTP layer relies on. `SqlStorage` is the
SQLAlchemy implementation; another backend only has to provide the same
methods.
"""
import logging
import secrets
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Protocol

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models, schemas
from .auth import hash_password
from .rules import Role, ScriptStatus

logger = logging.getLogger(__name__)


class Storage(Protocol):
    # users
    def get_user(self, user_id: int) -> Optional[models.User]: ...
    def get_user_by_email(self, email: str) -> Optional[models.User]: ...
    def create_user(self, data: schemas.RegisterRequest, role: str = ...) -> models.User: ...
    def list_users(self) -> List[models.User]: ...
    def delete_user(self, user_id: int) -> bool: ...

    # scripts
    def list_scripts(self, user_id: int) -> List[models.Script]: ...
    def get_script(self, script_id: int) -> Optional[models.Script]: ...
    def create_script(self, user_id: int, data: schemas.ScriptCreate) -> models.Script: ...
    def update_script(self, script_id: int, changes: Dict[str, Any]) -> Optional[models.Script]: ...
    def delete_script(self, script_id: int) -> bool: ...

    # trading accounts
    def list_trading_accounts(self, user_id: int) -> List[models.TradingAccount]: ...
    def get_trading_account(self, account_id: int) -> Optional[models.TradingAccount]: ...
    def create_trading_account(self, user_id: int, data: schemas.TradingAccountCreate) -> models.TradingAccount: ...
    def delete_trading_account(self, account_id: int) -> bool: ...

    # sessions
    def create_session(self, user_id: int, ttl_seconds: int, now: datetime) -> models.LoginSession: ...
    def get_active_session(self, session_id: str, now: datetime) -> Optional[models.LoginSession]: ...
    def delete_session(self, session_id: str) -> bool: ...


class SqlStorage:
    def __init__(self, db: Session):
        self.db = db

    # -------------------- users --------------------

    def get_user(self, user_id: int) -> Optional[models.User]:
        return self.db.get(models.User, user_id)

    def get_user_by_email(self, email: str) -> Optional[models.User]:
        return self.db.query(models.User).filter(models.User.email == email.lower()).first()

    def create_user(self, data: schemas.RegisterRequest, role: str = Role.USER.value) -> models.User:
        db_user = models.User(
            email=str(data.email).lower(),
            password_hash=hash_password(data.password),
            first_name=data.first_name,
            last_name=data.last_name,
            country=data.country,
            role=Role(role).value,
        )
        self.db.add(db_user)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ValueError("Email already in use") from e
        self.db.refresh(db_user)
        return db_user

    def list_users(self) -> List[models.User]:
        return self.db.query(models.User).order_by(models.User.id).all()

    def delete_user(self, user_id: int) -> bool:
        user = self.db.get(models.User, user_id)
        if not user:
            return False
        # Children first, then the user
        scripts = self.db.query(models.Script).filter(models.Script.user_id == user_id).all()
        for script in scripts:
            self.db.delete(script)
        accounts = self.db.query(models.TradingAccount).filter(models.TradingAccount.user_id == user_id).all()
        for account in accounts:
            self.db.delete(account)
        self.db.query(models.LoginSession).filter(models.LoginSession.user_id == user_id).delete(
            synchronize_session=False
        )
        self.db.flush()
        self.db.expire(user)
        self.db.delete(user)
        self.db.commit()
        logger.info(
            "deleted user %s with %d scripts and %d trading accounts", user_id, len(scripts), len(accounts)
        )
        return True

    # -------------------- scripts --------------------

    def list_scripts(self, user_id: int) -> List[models.Script]:
        return (
            self.db.query(models.Script)
            .filter(models.Script.user_id == user_id)
            .order_by(models.Script.id)
            .all()
        )

    def get_script(self, script_id: int) -> Optional[models.Script]:
        return self.db.get(models.Script, script_id)

    def create_script(self, user_id: int, data: schemas.ScriptCreate) -> models.Script:
        db_script = models.Script(
            name=data.name,
            code=data.code,
            user_id=user_id,
            status=ScriptStatus.STOPPED.value,
        )
        self.db.add(db_script)
        self.db.commit()
        self.db.refresh(db_script)
        return db_script

    def update_script(self, script_id: int, changes: Dict[str, Any]) -> Optional[models.Script]:
        script = self.db.get(models.Script, script_id)
        if not script:
            return None
        for field, value in changes.items():
            if field in ("id", "user_id"):
                raise ValueError(f"{field} cannot be changed")
            setattr(script, field, value)
        self.db.add(script)
        self.db.commit()
        self.db.refresh(script)
        return script

    def delete_script(self, script_id: int) -> bool:
        script = self.db.get(models.Script, script_id)
        if not script:
            return False
        self.db.delete(script)
        self.db.commit()
        return True

    # -------------------- trading accounts --------------------

    def list_trading_accounts(self, user_id: int) -> List[models.TradingAccount]:
        return (
            self.db.query(models.TradingAccount)
            .filter(models.TradingAccount.user_id == user_id)
            .order_by(models.TradingAccount.id)
            .all()
        )

    def get_trading_account(self, account_id: int) -> Optional[models.TradingAccount]:
        return self.db.get(models.TradingAccount, account_id)

    def create_trading_account(self, user_id: int, data: schemas.TradingAccountCreate) -> models.TradingAccount:
        db_account = models.TradingAccount(
            server=data.server,
            username=data.username,
            password=data.password,
            account_number=data.account_number,
            user_id=user_id,
            status=data.status,
        )
        self.db.add(db_account)
        self.db.commit()
        self.db.refresh(db_account)
        return db_account

    def delete_trading_account(self, account_id: int) -> bool:
        account = self.db.get(models.TradingAccount, account_id)
        if not account:
            return False
        self.db.delete(account)
        self.db.commit()
        return True

    # -------------------- sessions --------------------

    def create_session(self, user_id: int, ttl_seconds: int, now: datetime) -> models.LoginSession:
        # Drop this user's stale sessions while we're here
        self.db.query(models.LoginSession).filter(
            models.LoginSession.user_id == user_id,
            models.LoginSession.expires_at <= now,
        ).delete(synchronize_session=False)
        session = models.LoginSession(
            id=secrets.token_urlsafe(32),
            user_id=user_id,
            created_at=now,
            expires_at=now + timedelta(seconds=ttl_seconds),
        )
        self.db.add(session)
        self.db.commit()
        self.db.refresh(session)
        return session

    def get_active_session(self, session_id: str, now: datetime) -> Optional[models.LoginSession]:
        return (
            self.db.query(models.LoginSession)
            .filter(models.LoginSession.id == session_id, models.LoginSession.expires_at > now)
            .first()
        )

    def delete_session(self, session_id: str) -> bool:
        deleted = self.db.query(models.LoginSession).filter(models.LoginSession.id == session_id).delete(
            synchronize_session=False
        )
        self.db.commit()
        return bool(deleted)
