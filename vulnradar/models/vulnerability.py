"""ORM model for ingested vulnerability records."""

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
)

from vulnradar.models.base import Base, JSONType


class Vulnerability(Base):
    """
    One vulnerability record from the feed (or manual ingestion).

    tlp_rating and severity are computed once at insert and never recomputed.
    A row marked is_duplicate always carries duplicate_of_id.
    """

    __tablename__ = "vulnerabilities"

    id = Column(Integer, primary_key=True, autoincrement=True)
    cve_id = Column(String(64), nullable=True, index=True)
    title = Column(String(1024), nullable=False)
    description = Column(Text, nullable=True)
    source = Column(String(255), nullable=False)
    source_url = Column(String(2048), nullable=True)
    published_date = Column(Date, nullable=True)
    severity_score = Column(Float, nullable=True)
    severity_level = Column(String(16), nullable=False, default="Unknown", index=True)
    tlp_rating = Column(String(8), nullable=False, default="RED", index=True)
    affected_products = Column(Text, nullable=True)
    vendor_id = Column(Integer, ForeignKey("vendors.id", ondelete="SET NULL"), nullable=True, index=True)
    raw_data = Column(JSONType, nullable=True)
    is_duplicate = Column(Boolean, nullable=False, default=False)
    duplicate_of_id = Column(Integer, ForeignKey("vulnerabilities.id", ondelete="SET NULL"), nullable=True)
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
