"""Student record table

Every PII column holds a server envelope of a client envelope; email is cleartext (lookup key);
password holds a bcrypt digest.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _utcnow():
    return datetime.now(timezone.utc)


class Student(Base):
    __tablename__ = "students"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(320), unique=True, nullable=False, index=True)
    full_name = Column(Text, nullable=False)
    phone_number = Column(Text, nullable=False)
    date_of_birth = Column(Text, nullable=False)
    gender = Column(Text, nullable=False)
    address = Column(Text, nullable=False)
    course_enrolled = Column(Text, nullable=False)
    password = Column(String(60), nullable=False)  # bcrypt digest
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)
