# valet/models/card.py
"""
NFC card inventory table.
A row appears the first time a card is bound; release clears the binding
but keeps the row so the card can be reused.
"""

from sqlalchemy import Column, Integer, String, DateTime
from valet.database import Base


class CardRecord(Base):
    __tablename__ = "cards"

    card_id = Column(String(64), primary_key=True)
    state = Column(String(20), nullable=False, default="unbound", index=True)  # unbound | bound | pending_clear
    bound_vehicle_id = Column(Integer)
    bound_at = Column(DateTime)
    released_at = Column(DateTime)

    def __repr__(self):
        return f"<CardRecord {self.card_id} state={self.state} vehicle={self.bound_vehicle_id}>"
