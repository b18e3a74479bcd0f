from legalbook.db.base_class import Base

# import all models so metadata.create_all sees them
from legalbook.models.user import User
from legalbook.models.case import Case
from legalbook.models.appointment import Appointment

__all__ = ["Base"]
