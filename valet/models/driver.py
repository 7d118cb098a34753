# valet/models/driver.py
"""Drivers known to the dispatch queue. Identity comes from the external auth system."""

from sqlalchemy import Column, Integer, String
from valet.database import Base


class DriverRecord(Base):
    __tablename__ = "drivers"

    id = Column(String(64), primary_key=True)
    name = Column(String(200))
    status = Column(String(20), nullable=False, default="available")   # offline | available | busy
    active_request_id = Column(Integer)

    def __repr__(self):
        return f"<DriverRecord {self.id} status={self.status} request={self.active_request_id}>"
