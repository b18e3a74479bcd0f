"""Lookups into the user and case directories owned by other services."""
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from legalbook.models.case import Case
from legalbook.models.user import User, UserRole


@dataclass(frozen=True)
class DirectoryUser:
    id: uuid.UUID
    role: UserRole
    full_name: str = ""
    is_active: bool = True
    can_schedule_appointments: bool = False


@dataclass(frozen=True)
class DirectoryCase:
    id: uuid.UUID
    title: str


class UserDirectory(ABC):

    @abstractmethod
    def resolve_user(self, user_id: uuid.UUID) -> Optional[DirectoryUser]:
        pass


class CaseDirectory(ABC):

    @abstractmethod
    def resolve_case(self, case_id: uuid.UUID) -> Optional[DirectoryCase]:
        pass


class SqlUserDirectory(UserDirectory):

    def __init__(self, db: Session):
        self.db = db

    def resolve_user(self, user_id):
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            return None
        return DirectoryUser(
            id=user.id,
            role=user.role,
            full_name=user.full_name,
            is_active=user.is_active,
            can_schedule_appointments=user.can_schedule_appointments,
        )


class SqlCaseDirectory(CaseDirectory):

    def __init__(self, db: Session):
        self.db = db

    def resolve_case(self, case_id):
        case = self.db.query(Case).filter(Case.id == case_id).first()
        if not case:
            return None
        return DirectoryCase(id=case.id, title=case.title)
