import logging
import time
from typing import List, Optional

import jwt
from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from . import models, schemas
from .auth import create_session_token, decode_session_token, verify_password
from .config import get_settings
from .db import Base, SessionLocal, engine
from .errors import AccessDeniedError, InvalidActionError
from .log import setup_logging
from .rules import check_access, check_deletable, is_admin, status_changes, status_for_action
from .storage import SqlStorage, Storage

settings = get_settings()
setup_logging(settings.log_level, settings.log_json)
logger = logging.getLogger("pine_bridge.api")

# Create tables if not existing. Schema changes are out of scope for this service.
Base.metadata.create_all(bind=engine)

app = FastAPI(title="Pine-Bridge")


# Dependency to get DB session per request

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_storage(db: Session = Depends(get_db)) -> Storage:
    return SqlStorage(db)


def _request_token(request: Request) -> Optional[str]:
    # prefer Authorization bearer token, fall back to the session cookie
    auth = request.headers.get("authorization")
    if auth and auth.lower().startswith("bearer "):
        return auth.split(None, 1)[1]
    return request.cookies.get(settings.session_cookie)


def get_current_session(request: Request, storage: Storage = Depends(get_storage)) -> models.LoginSession:
    token = _request_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Authentication required")
    try:
        payload = decode_session_token(token)
    except jwt.PyJWTError:
        raise HTTPException(status_code=401, detail="Invalid session")
    sid = payload.get("sid")
    session = storage.get_active_session(sid, models.utcnow()) if sid else None
    if not session:
        raise HTTPException(status_code=401, detail="Session expired")
    return session


def get_current_user(
    session: models.LoginSession = Depends(get_current_session),
    storage: Storage = Depends(get_storage),
) -> models.User:
    user = storage.get_user(session.user_id)
    if not user:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


def require_admin(user: models.User = Depends(get_current_user)) -> models.User:
    if not is_admin(user):
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


def _open_session(response: Response, storage: Storage, user: models.User) -> None:
    session = storage.create_session(user.id, settings.session_ttl_seconds, models.utcnow())
    token = create_session_token(session.id, user.id)
    response.set_cookie(
        key=settings.session_cookie,
        value=token,
        max_age=settings.session_ttl_seconds,
        httponly=True,
        secure=settings.cookie_secure,
        samesite="lax",
    )


# -------------------- Errors & logging --------------------

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        errors.append({"field": schemas.error_field(err), "message": schemas.error_message(err)})
    return JSONResponse(status_code=400, content={"detail": "Validation failed", "errors": errors})


@app.exception_handler(InvalidActionError)
async def invalid_action_handler(request: Request, exc: InvalidActionError):
    return JSONResponse(status_code=400, content={"detail": exc.message})


@app.exception_handler(AccessDeniedError)
async def access_denied_handler(request: Request, exc: AccessDeniedError):
    return JSONResponse(status_code=403, content={"detail": exc.message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    # stays 500 if the handler raises; the error handler renders that response
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        if request.url.path.startswith("/api"):
            duration_ms = (time.perf_counter() - start) * 1000
            logger.info("%s %s %s in %dms", request.method, request.url.path, status_code, duration_ms)


@app.get("/health")
async def health():
    return {"status": "ok"}


# -------------------- Auth --------------------

@app.post("/api/register", response_model=schemas.UserRead, status_code=201)
async def register(payload: schemas.RegisterRequest, response: Response, storage: Storage = Depends(get_storage)):
    if storage.get_user_by_email(payload.email):
        raise HTTPException(status_code=400, detail="Email already in use")
    try:
        user = storage.create_user(payload)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    _open_session(response, storage, user)
    logger.info("registered user %s", user.id)
    return user


@app.post("/api/login", response_model=schemas.UserRead, status_code=201)
async def login(payload: schemas.LoginRequest, response: Response, storage: Storage = Depends(get_storage)):
    user = storage.get_user_by_email(payload.email)
    if not user or not verify_password(payload.password, user.password_hash):
        logger.warning("failed login for %s", payload.email)
        raise HTTPException(status_code=401, detail="Invalid email or password")
    _open_session(response, storage, user)
    return user


@app.post("/api/logout")
async def logout(
    response: Response,
    session: models.LoginSession = Depends(get_current_session),
    storage: Storage = Depends(get_storage),
):
    storage.delete_session(session.id)
    response.delete_cookie(settings.session_cookie)
    return {"status": "ok"}


@app.get("/api/user", response_model=schemas.UserRead)
async def current_user(user: models.User = Depends(get_current_user)):
    return user


# -------------------- Scripts --------------------

@app.get("/api/scripts", response_model=List[schemas.ScriptRead])
async def list_scripts(user: models.User = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    return storage.list_scripts(user.id)


@app.post("/api/scripts", response_model=schemas.ScriptRead, status_code=201)
async def create_script(
    payload: schemas.ScriptCreate,
    user: models.User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    return storage.create_script(user.id, payload)


def _owned_script(storage: Storage, script_id: int, user: models.User) -> models.Script:
    script = storage.get_script(script_id)
    if not script:
        raise HTTPException(status_code=404, detail="Script not found")
    check_access(user, script.user_id)
    return script


@app.get("/api/scripts/{script_id}", response_model=schemas.ScriptRead)
async def get_script(script_id: int, user: models.User = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    return _owned_script(storage, script_id, user)


@app.patch("/api/scripts/{script_id}/{action}", response_model=schemas.ScriptRead)
async def change_script_status(
    script_id: int,
    action: str,
    user: models.User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    # Reject unknown verbs before touching the database
    status = status_for_action(action)
    _owned_script(storage, script_id, user)
    updated = storage.update_script(script_id, status_changes(status, models.utcnow()))
    if not updated:
        raise HTTPException(status_code=404, detail="Script not found")
    logger.info("script %s -> %s by user %s", script_id, status.value, user.id)
    return updated


@app.delete("/api/scripts/{script_id}", status_code=204)
async def delete_script(script_id: int, user: models.User = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    _owned_script(storage, script_id, user)
    storage.delete_script(script_id)
    return Response(status_code=204)


# -------------------- Trading accounts --------------------

@app.get("/api/trading-accounts", response_model=List[schemas.TradingAccountRead])
async def list_trading_accounts(user: models.User = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    return storage.list_trading_accounts(user.id)


@app.post("/api/trading-accounts", response_model=schemas.TradingAccountRead, status_code=201)
async def create_trading_account(
    payload: schemas.TradingAccountCreate,
    user: models.User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    return storage.create_trading_account(user.id, payload)


def _owned_account(storage: Storage, account_id: int, user: models.User) -> models.TradingAccount:
    account = storage.get_trading_account(account_id)
    if not account:
        raise HTTPException(status_code=404, detail="Trading account not found")
    check_access(user, account.user_id)
    return account


@app.get("/api/trading-accounts/{account_id}", response_model=schemas.TradingAccountRead)
async def get_trading_account(account_id: int, user: models.User = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    return _owned_account(storage, account_id, user)


@app.delete("/api/trading-accounts/{account_id}", status_code=204)
async def delete_trading_account(account_id: int, user: models.User = Depends(get_current_user), storage: Storage = Depends(get_storage)):
    _owned_account(storage, account_id, user)
    storage.delete_trading_account(account_id)
    return Response(status_code=204)


# -------------------- Admin --------------------

@app.get("/api/admin/users", response_model=List[schemas.UserRead])
async def admin_list_users(admin: models.User = Depends(require_admin), storage: Storage = Depends(get_storage)):
    return storage.list_users()


@app.get("/api/admin/users/{user_id}", response_model=schemas.UserDetail)
async def admin_get_user(user_id: int, admin: models.User = Depends(require_admin), storage: Storage = Depends(get_storage)):
    user = storage.get_user(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@app.delete("/api/admin/users/{user_id}", status_code=204)
async def admin_delete_user(user_id: int, admin: models.User = Depends(require_admin), storage: Storage = Depends(get_storage)):
    target = storage.get_user(user_id)
    if not target:
        raise HTTPException(status_code=404, detail="User not found")
    check_deletable(target)
    storage.delete_user(user_id)
    logger.info("admin %s deleted user %s", admin.id, user_id)
    return Response(status_code=204)
