"""
Profile Model — Account owner as mirrored from the auth platform.
Carries the credit balance credited by online payments.
"""
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Numeric, ForeignKey, CheckConstraint, UniqueConstraint

from storefront.database import Base


class Profile(Base):
    __tablename__ = "profiles"
    __table_args__ = (CheckConstraint("balance >= 0", name="ck_profiles_balance_non_negative"),)

    id = Column(String(36), primary_key=True, index=True)   # auth platform user id (sub)
    email = Column(String(255), nullable=False)
    full_name = Column(String(255))
    username = Column(String(64))

    balance = Column(Numeric(12, 2), nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class UserRole(Base):
    __tablename__ = "user_roles"
    __table_args__ = (UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),)

    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), ForeignKey("profiles.id"), nullable=False, index=True)
    role = Column(String(16), nullable=False, default="user")  # admin | user
