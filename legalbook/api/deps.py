import uuid
from typing import Generator
from zoneinfo import ZoneInfo

from fastapi import Depends, HTTPException, status, Request, Header
from jose import JWTError
from pydantic import ValidationError
from sqlalchemy.orm import Session

from legalbook.core import security
from legalbook.core.config import settings
from legalbook.db.session import SessionLocal

from legalbook.schemas.auth import TokenPayload
from legalbook.services.calendar import get_calendar_store
from legalbook.services.directory import SqlCaseDirectory, SqlUserDirectory
from legalbook.services.notifications import NotificationDispatcher, get_dispatcher
from legalbook.services.scheduling.access import Caller
from legalbook.services.scheduling.availability import BusinessHours
from legalbook.services.scheduling.service import SchedulingService
from legalbook.services.scheduling.timeutils import Clock, make_clock

CANONICAL_TZ = ZoneInfo(settings.TIMEZONE)


def get_db() -> Generator:
    try:
        db = SessionLocal()
        yield db
    finally:
        db.close()

def get_clock() -> Clock:
    return make_clock(CANONICAL_TZ)

def get_notifier() -> NotificationDispatcher:
    return get_dispatcher()

def get_current_caller(
    request: Request,
    db: Session = Depends(get_db),
    authorization: str | None = Header(default=None),
) -> Caller:

    token = None

    # Authorization header first, then the session cookie
    if authorization and authorization.startswith("Bearer "):
        token = authorization.split(" ")[1]

    if not token:
        token = request.cookies.get("lb_token")

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )

    try:
        payload = security.decode_access_token(token)
        token_data = TokenPayload(**payload)
        user_id = uuid.UUID(token_data.sub)

    except (JWTError, ValidationError, TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Could not validate credentials",
        )

    user = SqlUserDirectory(db).resolve_user(user_id)

    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    if not user.is_active:
        raise HTTPException(status_code=400, detail="Inactive user")

    return Caller.from_user(user)

def get_scheduling_service(
    request: Request,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> SchedulingService:
    return SchedulingService(
        store=get_calendar_store(db, getattr(request.app.state, "calendar_store", None)),
        users=SqlUserDirectory(db),
        cases=SqlCaseDirectory(db),
        hours=BusinessHours.from_settings(settings),
        tz=CANONICAL_TZ,
        clock=clock,
    )
