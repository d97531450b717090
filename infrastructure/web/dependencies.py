import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Callable, ContextManager, Optional

from fastapi import Depends, Header, Request
from jose import jwt, JWTError

from config.settings import Settings
from core.errors import AuthenticationRequiredError
from core.services.payment_gateway import PaymentGateway
from infrastructure.db.sqlite import SQLiteAccountRepository, SQLitePaymentRepository, atomic, connect


def get_settings(request: Request) -> Settings:
    return request.app.state.settings

def get_db(settings: Settings = Depends(get_settings)):
    conn = connect(settings.DB_PATH)
    try:
        yield conn
    finally:
        conn.close()

def get_account_repo(conn: sqlite3.Connection = Depends(get_db)) -> SQLiteAccountRepository:
    return SQLiteAccountRepository(conn)

def get_payment_repo(conn: sqlite3.Connection = Depends(get_db)) -> SQLitePaymentRepository:
    return SQLitePaymentRepository(conn)

def get_transaction(conn: sqlite3.Connection = Depends(get_db)) -> Callable[[], ContextManager]:
    return lambda: atomic(conn)

# built once in create_app and shared by every request
def get_gateway(request: Request) -> PaymentGateway:
    return request.app.state.gateway

def client_origin(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


# jwt auth
def create_access_token(settings: Settings, account_id: str, expires_delta: Optional[timedelta] = None) -> str:
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    return jwt.encode({"sub": account_id, "exp": expire}, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

def get_optional_caller_id(
    authorization: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
) -> Optional[str]:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    token = authorization.split(" ", 1)[1]
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise AuthenticationRequiredError("Could not validate credentials")
    sub = payload.get("sub")
    if not sub:
        raise AuthenticationRequiredError("Could not validate credentials")
    return str(sub)

def get_caller_id(caller_id: Optional[str] = Depends(get_optional_caller_id)) -> str:
    if caller_id is None:
        raise AuthenticationRequiredError()
    return caller_id
