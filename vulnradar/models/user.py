"""ORM model for application users (identity-provider accounts and RBAC)."""

from sqlalchemy import Boolean, Column, DateTime, Integer, String, func

from vulnradar.models.base import Base


class User(Base):
    """
    User account linked to an identity-provider subject.

    role: 'employee', 'manager' or 'admin'. TLP clearance is derived from role,
    never stored. company_name is a denormalized copy of the linked company.
    password_hash is only set for local accounts created from the CLI.
    """

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), nullable=False, unique=True, index=True)
    display_name = Column(String(255), nullable=True)
    role = Column(String(32), nullable=False, default="employee")
    subject_id = Column(String(255), nullable=True, unique=True, index=True)
    company_name = Column(String(255), nullable=True)
    password_hash = Column(String(255), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
