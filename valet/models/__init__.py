# Valet Core: Database Models
# Import all models here for SQLAlchemy discovery

from valet.models.hook import HookRecord                              # noqa
from valet.models.card import CardRecord                              # noqa
from valet.models.vehicle import VehicleRecord                        # noqa
from valet.models.retrieval_request import RetrievalRequestRecord     # noqa
from valet.models.driver import DriverRecord                          # noqa
