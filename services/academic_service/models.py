"""
Academic Service Database Models

SQLAlchemy models for students, courses, semesters, offerings, prerequisites,
enrollments, exams and discounts.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from shared.database.postgres import Base

MONEY = Numeric(14, 4, asdecimal=True)


class StudentModel(Base):
    """Student database model."""

    __tablename__ = "students"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    first_name: Mapped[str] = mapped_column(String(50), nullable=False)
    last_name: Mapped[str] = mapped_column(String(50), nullable=False)
    cnp: Mapped[str] = mapped_column(String(13), unique=True, index=True, nullable=False)
    address: Mapped[str] = mapped_column(Text, nullable=False)
    univ_code: Mapped[str] = mapped_column(String(20), nullable=False)
    emails: Mapped[list] = mapped_column(JSON, default=list, nullable=False)
    phone_numbers: Mapped[list] = mapped_column(JSON, default=list, nullable=False)


class CourseModel(Base):
    """Course database model."""

    __tablename__ = "courses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    credits: Mapped[int] = mapped_column(Integer, nullable=False)
    cost: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    min_cost_per_credit: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    max_cost_per_credit: Mapped[Decimal] = mapped_column(MONEY, nullable=False)


class SemesterModel(Base):
    """Semester database model."""

    __tablename__ = "semesters"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    number: Mapped[int] = mapped_column(Integer, unique=True, index=True, nullable=False)
    min_credits: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


class CourseSemesterModel(Base):
    """Course offering in a semester."""

    __tablename__ = "course_semesters"
    __table_args__ = (UniqueConstraint("course_id", "semester_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    course_id: Mapped[int] = mapped_column(ForeignKey("courses.id"), nullable=False, index=True)
    semester_id: Mapped[int] = mapped_column(ForeignKey("semesters.id"), nullable=False, index=True)


class CoursePrerequisiteModel(Base):
    """Prerequisite edge database model."""

    __tablename__ = "course_prerequisites"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    course_id: Mapped[int] = mapped_column(ForeignKey("courses.id"), nullable=False, index=True)
    prereq_id: Mapped[int] = mapped_column(ForeignKey("courses.id"), nullable=False, index=True)
    min_grade: Mapped[int] = mapped_column(Integer, default=5, nullable=False)


class EnrollmentModel(Base):
    """Enrollment database model."""

    __tablename__ = "enrollments"
    __table_args__ = (UniqueConstraint("student_id", "course_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    student_id: Mapped[int] = mapped_column(ForeignKey("students.id"), nullable=False, index=True)
    course_id: Mapped[int] = mapped_column(ForeignKey("courses.id"), nullable=False, index=True)
    semester_id: Mapped[int] = mapped_column(ForeignKey("semesters.id"), nullable=False, index=True)
    amount_paid: Mapped[Decimal] = mapped_column(MONEY, default=Decimal("0"), nullable=False)


class ExamModel(Base):
    """Exam attempt database model."""

    __tablename__ = "exams"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    student_id: Mapped[int] = mapped_column(ForeignKey("students.id"), nullable=False, index=True)
    course_id: Mapped[int] = mapped_column(ForeignKey("courses.id"), nullable=False, index=True)
    date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    grade: Mapped[int] = mapped_column(Integer, nullable=False)


class CourseDiscountModel(Base):
    """Discount group membership database model."""

    __tablename__ = "course_discounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    group_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    course_id: Mapped[int] = mapped_column(ForeignKey("courses.id"), nullable=False, index=True)
    discount_percentage: Mapped[float] = mapped_column(Float, nullable=False)
