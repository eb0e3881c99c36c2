import enum
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    Column,
    DECIMAL,
    DateTime,
    Enum,
    ForeignKey,
    ForeignKeyConstraint,
    Index,
    Integer,
    String,
    Table,
    Text,
)
from sqlalchemy.orm import Mapped, declarative_base, mapped_column, relationship

Base = declarative_base()
metadata = Base.metadata


def utcnow():
    """Naive UTC timestamp, the format every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class UserRole(str, enum.Enum):
    Admin = "Admin"
    Instructor = "Instructor"
    Member = "Member"


class SubscriptionType(str, enum.Enum):
    Monthly = "Monthly"
    Semestral = "Semestral"
    Yearly = "Yearly"


class PaymentStatus(str, enum.Enum):
    Pending = "Pending"
    Completed = "Completed"
    Failed = "Failed"
    Refunded = "Refunded"


class SessionStatus(str, enum.Enum):
    Scheduled = "Scheduled"
    Completed = "Completed"
    Cancelled = "Cancelled"
    NoShow = "NoShow"


class GroupClassType(str, enum.Enum):
    Yoga = "Yoga"
    Pilates = "Pilates"
    Spinning = "Spinning"
    Zumba = "Zumba"
    Crossfit = "Crossfit"
    HIIT = "HIIT"
    StrengthTraining = "StrengthTraining"
    Cardio = "Cardio"
    Jumping = "Jumping"
    ABS = "ABS"


class SoftDeleteMixin:
    """Rows are flagged, never removed. Both columns change together."""

    is_deleted = mapped_column(Boolean, nullable=False, default=False)
    deleted_at = mapped_column(DateTime)

    def soft_delete(self, when=None):
        self.is_deleted = True
        self.deleted_at = when or utcnow()

    @classmethod
    def not_deleted(cls):
        return cls.is_deleted.is_(False)


class TimestampMixin:
    created_at = mapped_column(DateTime, nullable=False, default=utcnow)
    updated_at = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def touch(self):
        self.updated_at = utcnow()


group_class_members = Table(
    "group_class_members",
    metadata,
    Column(
        "group_class_id",
        Integer,
        ForeignKey("group_classes.id", ondelete="CASCADE", name="fk_gcm_group_class"),
        primary_key=True,
    ),
    Column(
        "member_id",
        Integer,
        ForeignKey("members.id", ondelete="CASCADE", name="fk_gcm_member"),
        primary_key=True,
    ),
)


class User(SoftDeleteMixin, TimestampMixin, Base):
    __tablename__ = "users"
    # Email is unique among non-deleted users only, checked in the views.
    __table_args__ = (Index("ix_users_email", "email"),)

    id = mapped_column(Integer, primary_key=True)
    name = mapped_column(String(100), nullable=False)
    email = mapped_column(String(255), nullable=False)
    phone_number = mapped_column(String(30), nullable=False, default="")
    password_hash = mapped_column(String(72), nullable=False)
    is_admin = mapped_column(Boolean, nullable=False, default=False)
    role = mapped_column(
        Enum(UserRole, name="user_role"), nullable=False, default=UserRole.Member
    )

    instructor: Mapped[Optional["Instructor"]] = relationship(
        "Instructor", uselist=False, back_populates="user"
    )
    member: Mapped[Optional["Member"]] = relationship(
        "Member", uselist=False, back_populates="user"
    )
    user_subscriptions: Mapped[List["UserSubscription"]] = relationship(
        "UserSubscription", uselist=True, back_populates="user"
    )


class Gym(Base):
    __tablename__ = "gyms"

    id = mapped_column(Integer, primary_key=True)
    name = mapped_column(String(100), nullable=False, default="")

    instructors: Mapped[List["Instructor"]] = relationship(
        "Instructor", uselist=True, back_populates="gym"
    )
    members: Mapped[List["Member"]] = relationship(
        "Member", uselist=True, back_populates="gym"
    )
    group_classes: Mapped[List["GroupClass"]] = relationship(
        "GroupClass", uselist=True, back_populates="gym"
    )


class Instructor(TimestampMixin, Base):
    __tablename__ = "instructors"
    __table_args__ = (
        ForeignKeyConstraint(
            ["user_id"], ["users.id"], ondelete="CASCADE", name="fk_instructor_user"
        ),
        ForeignKeyConstraint(
            ["gym_id"], ["gyms.id"], ondelete="SET NULL", name="fk_instructor_gym"
        ),
        Index("ix_instructors_user_id", "user_id", unique=True),
    )

    id = mapped_column(Integer, primary_key=True)
    user_id = mapped_column(Integer, nullable=False)
    gym_id = mapped_column(Integer)

    user: Mapped["User"] = relationship("User", back_populates="instructor")
    gym: Mapped[Optional["Gym"]] = relationship("Gym", back_populates="instructors")
    members: Mapped[List["Member"]] = relationship(
        "Member", uselist=True, back_populates="instructor"
    )

    @classmethod
    def not_deleted(cls):
        return cls.user.has(User.not_deleted())


class Member(TimestampMixin, Base):
    __tablename__ = "members"
    __table_args__ = (
        ForeignKeyConstraint(
            ["user_id"], ["users.id"], ondelete="CASCADE", name="fk_member_user"
        ),
        ForeignKeyConstraint(
            ["instructor_id"],
            ["instructors.id"],
            ondelete="SET NULL",
            name="fk_member_instructor",
        ),
        ForeignKeyConstraint(
            ["gym_id"], ["gyms.id"], ondelete="SET NULL", name="fk_member_gym"
        ),
        Index("ix_members_user_id", "user_id", unique=True),
    )

    id = mapped_column(Integer, primary_key=True)
    user_id = mapped_column(Integer, nullable=False)
    instructor_id = mapped_column(Integer)
    gym_id = mapped_column(Integer)
    is_active = mapped_column(Boolean, nullable=False, default=True)

    user: Mapped["User"] = relationship("User", back_populates="member")
    instructor: Mapped[Optional["Instructor"]] = relationship(
        "Instructor", back_populates="members"
    )
    gym: Mapped[Optional["Gym"]] = relationship("Gym", back_populates="members")
    group_classes: Mapped[List["GroupClass"]] = relationship(
        "GroupClass", secondary=group_class_members, back_populates="members"
    )

    @classmethod
    def not_deleted(cls):
        return cls.user.has(User.not_deleted())


class GroupClass(SoftDeleteMixin, Base):
    __tablename__ = "group_classes"
    __table_args__ = (
        ForeignKeyConstraint(
            ["instructor_id"], ["instructors.id"], name="fk_group_class_instructor"
        ),
        ForeignKeyConstraint(
            ["gym_id"], ["gyms.id"], ondelete="SET NULL", name="fk_group_class_gym"
        ),
    )

    id = mapped_column(Integer, primary_key=True)
    type = mapped_column(Enum(GroupClassType, name="group_class_type"), nullable=False)
    name = mapped_column(String(100), nullable=False, default="")
    description = mapped_column(Text, nullable=False, default="")
    start_time = mapped_column(DateTime, nullable=False)
    max_capacity = mapped_column(Integer, nullable=False)
    # Stored as given; enrolment changes do not update it.
    current_enrollment = mapped_column(Integer, nullable=False, default=0)
    instructor_id = mapped_column(Integer)
    gym_id = mapped_column(Integer)

    instructor: Mapped[Optional["Instructor"]] = relationship("Instructor")
    gym: Mapped[Optional["Gym"]] = relationship("Gym", back_populates="group_classes")
    members: Mapped[List["Member"]] = relationship(
        "Member", secondary=group_class_members, back_populates="group_classes"
    )


class Subscription(SoftDeleteMixin, Base):
    __tablename__ = "subscriptions"

    id = mapped_column(Integer, primary_key=True)
    type = mapped_column(
        Enum(SubscriptionType, name="subscription_type"), nullable=False
    )
    total_price = mapped_column(DECIMAL(10, 2), nullable=False)


class UserSubscription(SoftDeleteMixin, Base):
    __tablename__ = "user_subscriptions"
    __table_args__ = (
        ForeignKeyConstraint(
            ["user_id"], ["users.id"], ondelete="CASCADE", name="fk_user_sub_user"
        ),
        ForeignKeyConstraint(
            ["subscription_id"], ["subscriptions.id"], name="fk_user_sub_subscription"
        ),
        # (user, subscription) uniqueness only holds for active rows, checked in the views.
        Index("ix_user_sub_pair", "user_id", "subscription_id"),
    )

    id = mapped_column(Integer, primary_key=True)
    user_id = mapped_column(Integer, nullable=False)
    subscription_id = mapped_column(Integer, nullable=False)
    start_date = mapped_column(DateTime, nullable=False)
    end_date = mapped_column(DateTime, nullable=False)
    is_active = mapped_column(Boolean, nullable=False, default=True)

    user: Mapped["User"] = relationship("User", back_populates="user_subscriptions")
    subscription: Mapped["Subscription"] = relationship("Subscription")
    payments: Mapped[List["Payment"]] = relationship(
        "Payment", uselist=True, back_populates="user_subscription"
    )


class Payment(SoftDeleteMixin, Base):
    __tablename__ = "payments"
    __table_args__ = (
        ForeignKeyConstraint(
            ["user_subscription_id"],
            ["user_subscriptions.id"],
            ondelete="CASCADE",
            name="fk_payment_user_sub",
        ),
    )

    id = mapped_column(Integer, primary_key=True)
    user_subscription_id = mapped_column(Integer, nullable=False)
    amount = mapped_column(DECIMAL(10, 2), nullable=False)
    payment_date = mapped_column(DateTime, nullable=False)
    status = mapped_column(
        Enum(PaymentStatus, name="payment_status"),
        nullable=False,
        default=PaymentStatus.Pending,
    )
    transaction_id = mapped_column(String(100))

    user_subscription: Mapped["UserSubscription"] = relationship(
        "UserSubscription", back_populates="payments"
    )


class PtSession(SoftDeleteMixin, Base):
    __tablename__ = "pt_sessions"
    __table_args__ = (
        ForeignKeyConstraint(
            ["instructor_id"], ["instructors.id"], name="fk_pt_session_instructor"
        ),
        ForeignKeyConstraint(["member_id"], ["members.id"], name="fk_pt_session_member"),
    )

    id = mapped_column(Integer, primary_key=True)
    instructor_id = mapped_column(Integer, nullable=False)
    member_id = mapped_column(Integer, nullable=False)
    price = mapped_column(DECIMAL(10, 2), nullable=False, default=0)
    session_time = mapped_column(DateTime, nullable=False)
    notes = mapped_column(Text, nullable=False, default="")
    status = mapped_column(
        Enum(SessionStatus, name="session_status"),
        nullable=False,
        default=SessionStatus.Scheduled,
    )

    instructor: Mapped["Instructor"] = relationship("Instructor")
    member: Mapped["Member"] = relationship("Member")
