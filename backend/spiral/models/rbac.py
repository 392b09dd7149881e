from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Table, Text
from sqlalchemy.orm import relationship

from ..core.clock import utcnow
from ..database import Base


role_permissions = Table(
    "role_permissions",
    Base.metadata,
    Column("role_id", Integer, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    Column("permission_id", Integer, ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True),
)


class Role(Base):
    __tablename__ = "roles"

    id = Column(Integer, primary_key=True)
    name = Column(String(50), unique=True, nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    permissions = relationship("Permission", secondary=role_permissions, back_populates="roles")


class Permission(Base):
    __tablename__ = "permissions"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), unique=True, nullable=False)  # es. "products.create"
    resource = Column(String(50), nullable=True)
    action = Column(String(50), nullable=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    roles = relationship("Role", secondary=role_permissions, back_populates="permissions")

    __table_args__ = (Index("idx_permissions_resource", "resource", "action"),)


class PersonRole(Base):
    """Assegnazione persona↔ruolo; la scadenza si valuta a ogni controllo, mai in cache."""

    __tablename__ = "person_roles"

    person_id = Column(Integer, ForeignKey("persons.id", ondelete="CASCADE"), primary_key=True)
    role_id = Column(Integer, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True)
    assigned_at = Column(DateTime, nullable=False, default=utcnow)
    assigned_by = Column(Integer, ForeignKey("persons.id", ondelete="SET NULL"), nullable=True)
    expires_at = Column(DateTime, nullable=True)

    person = relationship("Person", foreign_keys=[person_id], back_populates="role_assignments")
    role = relationship("Role")

    def is_active_at(self, now) -> bool:
        return self.expires_at is None or self.expires_at > now
