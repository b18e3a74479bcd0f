from datetime import datetime, timedelta, time
from zoneinfo import ZoneInfo

from legalbook.core.config import settings
from legalbook.core.security import create_access_token
from legalbook.db.base import Base
from legalbook.db.session import SessionLocal, engine
from legalbook.models.appointment import Appointment, AppointmentStatus, AppointmentType, LocationType
from legalbook.models.case import Case
from legalbook.models.user import User, UserRole

DEMO_USERS = [
    ("advocate@demo.com", "Demo Advocate", UserRole.professional, False),
    ("client@demo.com", "Demo Client", UserRole.client, False),
    ("admin@demo.com", "Demo Admin", UserRole.admin, True),
]


def get_or_create_user(db, email, full_name, role, can_schedule) -> User:
    user = db.query(User).filter(User.email == email).first()
    if not user:
        user = User(
            email=email,
            full_name=full_name,
            role=role,
            is_active=True,
            can_schedule_appointments=can_schedule,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        print(f"Created {role.value} {email}")
    return user


def next_business_day(now: datetime) -> datetime:
    day = now.date() + timedelta(days=1)
    while day.isoweekday() not in settings.BUSINESS_DAYS:
        day += timedelta(days=1)
    return datetime.combine(day, time(10, 0))


def run():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()

    try:
        users = {
            role: get_or_create_user(db, email, name, role, can_schedule)
            for email, name, role, can_schedule in DEMO_USERS
        }
        advocate = users[UserRole.professional]
        client = users[UserRole.client]

        # ---------- CASE ----------
        case = db.query(Case).filter(Case.case_number == "CASE-001").first()
        if not case:
            case = Case(
                title="Demo Holdings v. Example Ltd.",
                case_number="CASE-001",
                client_id=client.id,
                professional_id=advocate.id,
            )
            db.add(case)
            db.commit()
            db.refresh(case)
            print("Created case")

        # ---------- APPOINTMENT ----------
        if db.query(Appointment).count() == 0:
            now = datetime.now(ZoneInfo(settings.TIMEZONE)).replace(tzinfo=None)
            start = next_business_day(now)
            db.add(Appointment(
                title="Initial consultation",
                description="Corporate restructuring questions",
                client_id=client.id,
                professional_id=advocate.id,
                case_id=case.id,
                start_time=start,
                end_time=start + timedelta(hours=1),
                type=AppointmentType.consultation,
                status=AppointmentStatus.scheduled,
                location_type=LocationType.office,
                location_room="Room 2",
                booked_by=client.id,
            ))
            db.commit()
            print("Seeded appointment")

        for role, user in users.items():
            print(f"{role.value:<12} {user.id}  token: {create_access_token(user.id)}")

    finally:
        db.close()


if __name__ == "__main__":
    run()
