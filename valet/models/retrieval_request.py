# valet/models/retrieval_request.py
"""
Retrieval requests table.
Kept as history once completed or cancelled; at most one non-terminal row per vehicle.
"""

from sqlalchemy import Boolean, Column, Integer, String, DateTime, Float, Text
from valet.database import Base


class RetrievalRequestRecord(Base):
    __tablename__ = "retrieval_requests"

    id = Column(Integer, primary_key=True, autoincrement=False)
    vehicle_id = Column(Integer, nullable=False, index=True)
    card_id = Column(String(64), nullable=False, index=True)
    is_priority = Column(Boolean, nullable=False, default=False)
    payment_method = Column(String(30))      # cash | card | online | pay_at_counter
    amount = Column(Float, nullable=False, default=0.0)
    tip_amount = Column(Float, nullable=False, default=0.0)
    status = Column(String(20), nullable=False, index=True)
    assigned_driver_id = Column(String(64), index=True)
    payment_confirmed = Column(Boolean, nullable=False, default=False)
    card_verified = Column(Boolean, nullable=False, default=False)
    sequence = Column(Integer, nullable=False)   # submission order tiebreaker
    requested_at = Column(DateTime, nullable=False, index=True)
    assigned_at = Column(DateTime)
    status_updated_at = Column(DateTime)
    ready_at = Column(DateTime)
    completed_at = Column(DateTime)
    cancelled_at = Column(DateTime)
    cancel_reason = Column(Text)

    def __repr__(self):
        return f"<RetrievalRequestRecord {self.id} vehicle={self.vehicle_id} status={self.status}>"
