from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator
from pydantic.config import ConfigDict

from .utils import clean_text


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    first_name: str = Field(..., min_length=2, max_length=100)
    last_name: str = Field(..., min_length=2, max_length=100)
    country: str = Field(..., min_length=2, max_length=100)

    @field_validator("first_name", "last_name", "country", mode="before")
    def strip_markup(cls, v):
        # Length limits apply to the cleaned value
        return clean_text(v) if isinstance(v, str) else v


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)


class UserRead(BaseModel):
    id: int
    email: str
    first_name: str
    last_name: str
    country: str
    role: str = "user"
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ScriptCreate(BaseModel):
    name: str = Field(..., min_length=3, max_length=200)
    code: str = Field(..., min_length=10)

    @field_validator("name", mode="before")
    def strip_markup(cls, v):
        return clean_text(v) if isinstance(v, str) else v


class ScriptRead(BaseModel):
    id: int
    name: str
    code: str
    user_id: int
    status: Literal["running", "paused", "stopped"]
    last_run: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class TradingAccountCreate(BaseModel):
    server: str = Field(..., min_length=3, max_length=200)
    username: str = Field(..., min_length=3, max_length=200)
    password: str = Field(..., min_length=6, max_length=200)
    account_number: str = Field(..., min_length=3, max_length=100)
    # Client-asserted; no connectivity check happens behind it
    status: Literal["connected", "disconnected"] = "disconnected"


class TradingAccountRead(BaseModel):
    id: int
    server: str
    username: str
    account_number: str
    user_id: int
    status: Literal["connected", "disconnected"]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UserDetail(UserRead):
    scripts: list[ScriptRead] = []
    trading_accounts: list[TradingAccountRead] = []


def error_field(err: dict) -> str:
    """Dotted field path of a pydantic error, without the request-part prefix."""
    return ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "path", "query"))


def error_message(err: dict) -> str:
    """Readable message for one pydantic error, e.g. "Password must be at least 6 characters"."""
    field = error_field(err).rsplit(".", 1)[-1]
    label = field.replace("_", " ").capitalize() if field else "Value"
    ctx = err.get("ctx") or {}
    kind = err.get("type")
    if kind == "string_too_short":
        return f"{label} must be at least {ctx.get('min_length')} characters"
    if kind == "string_too_long":
        return f"{label} must be at most {ctx.get('max_length')} characters"
    if kind == "missing":
        return f"{label} is required"
    if kind == "value_error" and ctx.get("error") is not None:
        return str(ctx["error"])
    return err.get("msg", "")
