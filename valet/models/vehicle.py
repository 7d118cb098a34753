# valet/models/vehicle.py
"""
Checked-in vehicles table.
Created at check-in once a hook and card are secured; status only moves
forward (parked → retrieval_requested → retrieving → retrieved) except
when a retrieval is cancelled.
"""

from sqlalchemy import Column, Integer, String, DateTime
from valet.database import Base


class VehicleRecord(Base):
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, autoincrement=False)
    card_id = Column(String(64), nullable=False, index=True)
    hook_number = Column(Integer, nullable=False)
    plate = Column(String(20), nullable=False, index=True)
    make = Column(String(100))
    model = Column(String(100))
    color = Column(String(50))
    status = Column(String(30), nullable=False, index=True)
    check_in_time = Column(DateTime, nullable=False)
    check_out_time = Column(DateTime)

    def __repr__(self):
        return f"<VehicleRecord {self.id} plate={self.plate} status={self.status}>"
