"""
Access Control Data Models
=====================================
SQLAlchemy ORM models for roles, permissions, modules and companies.

Models:
- Role: Named privilege level plus a set of permission references
- Permission: Named capability with back-references to roles and modules
- Module: Feature bundle grouping permissions, activated per company
- Company: Tenant keeping a denormalized list of activated module ids
- CompanyModule: Join row recording a module activation for a company

The reference lists (Role.permissions, Permission.assigned_roles,
Permission.assigned_modules, Module.permissions, Company.modules) are JSON
arrays of ids kept consistent by app.services.reference_graph, not by
foreign keys.
"""

from sqlalchemy import Column, String, ForeignKey, Text, DateTime, JSON, Boolean, BigInteger, UniqueConstraint
from datetime import datetime, timezone
import uuid
from app.db.database import Base


def _now():
    return datetime.now(timezone.utc)


class Role(Base):
    __tablename__ = "roles"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    name = Column(String, nullable=False, index=True)
    description = Column(Text, nullable=True)
    # Free-form on purpose: values outside read/write/admin resolve to no access.
    level = Column(String, nullable=True)
    permissions = Column(JSON, nullable=False, default=list)
    company_id = Column(String, ForeignKey("companies.id", ondelete="CASCADE"), nullable=True, index=True)
    created_at = Column(DateTime, default=_now)
    updated_at = Column(DateTime, default=_now, onupdate=_now)


class Permission(Base):
    __tablename__ = "permissions"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    name = Column(String, unique=True, nullable=False)
    description = Column(Text, nullable=True)
    assigned_roles = Column(JSON, nullable=False, default=list)
    assigned_modules = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, default=_now)


class Module(Base):
    __tablename__ = "modules"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    is_active_by_default = Column(Boolean, nullable=False, default=False)
    permissions = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, default=_now)


class Company(Base):
    __tablename__ = "companies"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    name = Column(String, nullable=False)
    owner_id = Column(String, nullable=True, index=True)
    modules = Column(JSON, nullable=False, default=list)
    settings = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=_now)


class CompanyModule(Base):
    __tablename__ = "company_modules"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    company_id = Column(String, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    module_id = Column(String, nullable=False, index=True)
    activated_by = Column(String, nullable=True)
    activated_at = Column(BigInteger, nullable=False)

    __table_args__ = (UniqueConstraint("company_id", "module_id", name="uq_company_module"),)
