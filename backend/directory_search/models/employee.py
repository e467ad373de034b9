from sqlalchemy import JSON, Boolean, Column, Index, Text
from directory_search.database import Base


class Employee(Base):
    __tablename__ = "employees"

    id = Column(Text, primary_key=True)
    tenant_id = Column(Text, nullable=False)
    first_name = Column(Text, nullable=False)
    last_name = Column(Text, nullable=False)
    email = Column(Text)
    title = Column(Text)
    department = Column(Text)
    skills = Column(JSON, nullable=False, default=list)
    bio = Column(Text)
    photo_url = Column(Text)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    __table_args__ = (
        Index("idx_employees_tenant", "tenant_id"),
        Index("idx_employees_tenant_department", "tenant_id", "department"),
    )
