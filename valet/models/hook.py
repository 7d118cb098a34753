# valet/models/hook.py
"""
Key hook board table.
One row per physical hook, numbered 1..HOOK_COUNT and seeded at first start.
Rows are never deleted; only state and bound_vehicle_id change.
"""

from sqlalchemy import Column, Integer, String, DateTime
from valet.database import Base


class HookRecord(Base):
    __tablename__ = "hooks"

    number = Column(Integer, primary_key=True, autoincrement=False)
    state = Column(String(20), nullable=False, default="available", index=True)  # available | occupied
    bound_vehicle_id = Column(Integer)       # vehicles.id while occupied
    assigned_at = Column(DateTime)

    def __repr__(self):
        return f"<HookRecord {self.number} state={self.state} vehicle={self.bound_vehicle_id}>"
