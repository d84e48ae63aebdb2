from datetime import datetime, timezone
from sqlalchemy import Boolean, Column, Date, DateTime, Integer, SmallInteger, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class ContactForm(Base):
    __tablename__ = "contact_forms"
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    email = Column(String(100), nullable=False)
    message = Column(Text, nullable=False)
    created_at = Column(DateTime, default=utcnow, index=True)


class JobApplication(Base):
    __tablename__ = "job_applications"
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    rut = Column(String(20), nullable=False)
    email = Column(String(100), nullable=False)
    phone = Column(String(20), nullable=True)
    position = Column(String(100), nullable=False)
    interest = Column(Text, nullable=False)
    message = Column(Text, nullable=True)
    cv_base64 = Column(Text, nullable=True)
    cv_filename = Column(String(255), nullable=True)
    cv_mime_type = Column(String(100), nullable=True)
    desired_area = Column(String(100), nullable=True)
    salary_expectation = Column(String(50), nullable=True)
    skills = Column(Text, nullable=True)
    contacted = Column(String(2), nullable=True)
    last_contacted_at = Column(DateTime, nullable=True)
    pending_certification = Column(String(100), nullable=True)
    psych_exam = Column(String(100), nullable=True)
    reference_name = Column(String(100), nullable=True)
    reference_email = Column(String(100), nullable=True)
    education_level = Column(String(100), nullable=True)
    certifications = Column(Text, nullable=True)
    experience = Column(String(100), nullable=True)
    created_at = Column(DateTime, default=utcnow, index=True)

    @property
    def has_cv(self) -> bool:
        return bool(self.cv_base64)


class ForumImage(Base):
    __tablename__ = "forum_images"
    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(100), unique=True, index=True, nullable=False)
    description = Column(String(255), nullable=True)
    image_base64 = Column(Text, nullable=True)
    mime_type = Column(String(30), nullable=True)
    filename = Column(String(255), nullable=True)
    sort_order = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=utcnow)


class SecurityEvaluation(Base):
    __tablename__ = "security_evaluations"
    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, index=True)
    full_name = Column(String(255), nullable=False)
    company = Column(String(255), nullable=False, index=True)
    phone = Column(String(50), nullable=True)
    proposed_date = Column(Date, nullable=True)
    uses_oracle = Column(Boolean, default=False, nullable=False)
    uses_sqlserver = Column(Boolean, default=False, nullable=False)
    uses_mongodb = Column(Boolean, default=False, nullable=False)
    other_engines = Column(String(255), nullable=True)
    answer1 = Column(SmallInteger, nullable=True)
    answer2 = Column(SmallInteger, nullable=True)
    answer3 = Column(SmallInteger, nullable=True)
    answer4 = Column(Boolean, nullable=True)
    answer5 = Column(Boolean, nullable=True)
    answer6 = Column(Boolean, nullable=True)
    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
