"""
Create the initial admin account.

Registration never grants the admin role, so the first admin has to come from
here. Running it again is a no-op when the email already exists.

Usage:
  python -m pine_bridge.seed [--email admin@example.com] [--password secret]
"""
import argparse
import logging
from typing import Tuple

from pydantic import ValidationError

from . import models, schemas
from .config import get_settings
from .db import Base, SessionLocal, engine
from .log import setup_logging
from .rules import Role
from .storage import SqlStorage

logger = logging.getLogger(__name__)


def admin_request(email: str, password: str) -> schemas.RegisterRequest:
    # Raises pydantic.ValidationError for a bad email or a short password
    return schemas.RegisterRequest(
        email=email,
        password=password,
        first_name="Admin",
        last_name="User",
        country="US",
    )


def ensure_admin(storage: SqlStorage, data: schemas.RegisterRequest) -> Tuple[models.User, bool]:
    """Return (user, created). An existing user with that email is left untouched."""
    existing = storage.get_user_by_email(data.email)
    if existing:
        return existing, False
    return storage.create_user(data, role=Role.ADMIN.value), True


def main(argv=None):
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_json)

    parser = argparse.ArgumentParser(description="Create the Pine-Bridge admin account")
    parser.add_argument("--email", default=settings.admin_email, help="Admin email address")
    parser.add_argument("--password", default=settings.admin_password, help="Admin password (min 6 characters)")
    args = parser.parse_args(argv)

    try:
        data = admin_request(args.email, args.password)
    except ValidationError as e:
        parser.error("; ".join(schemas.error_message(err) for err in e.errors()))

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        user, created = ensure_admin(SqlStorage(db), data)
    finally:
        db.close()

    if created:
        logger.info("admin user created (%s)", args.email)
    else:
        logger.info("user %s already exists with role %s", args.email, user.role)


if __name__ == "__main__":
    main()
