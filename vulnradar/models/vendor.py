"""ORM model for vendors that vulnerabilities are matched against."""

from sqlalchemy import Column, DateTime, Integer, String, Text, func

from vulnradar.models.base import Base


class Vendor(Base):
    """Hardware/software vendor; its name is the NVD keyword used for feed downloads."""

    __tablename__ = "vendors"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, unique=True)
    vendor_type = Column(String(32), nullable=False, default="Software")
    description = Column(Text, nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
