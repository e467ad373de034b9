from sqlalchemy import JSON, Column, Index, Text
from directory_search.database import Base


class AnalyticsEvent(Base):
    __tablename__ = "analytics_events"

    id = Column(Text, primary_key=True)
    tenant_id = Column(Text, nullable=False)
    user_id = Column(Text)
    event_type = Column(Text, nullable=False)
    # "metadata" is reserved on declarative classes
    payload = Column("metadata", JSON, nullable=False, default=dict)
    created_at = Column(Text, nullable=False)

    __table_args__ = (
        Index("idx_analytics_tenant_type_created", "tenant_id", "event_type", "created_at"),
    )
