from sqlalchemy import JSON, CheckConstraint, Column, DateTime, Float, Index, Integer, String
from sqlalchemy.sql import func

from .database import Base

STATUS_APPROVED = "approved"
STATUS_PENDING = "pending"
STATUS_REJECTED = "rejected"
STATUSES = (STATUS_APPROVED, STATUS_PENDING, STATUS_REJECTED)

DEFAULT_ACCURACY_M = 20.0
MAX_ACCURACY_M = 1000.0
MAX_DESCRIPTION_LENGTH = 500


class Sighting(Base):
    __tablename__ = "sightings"

    id = Column(Integer, primary_key=True, index=True)
    observed_at = Column(DateTime(timezone=True), nullable=False)
    loc = Column(JSON, nullable=False)  # {"type": "Point", "coordinates": [lng, lat]}
    geo_cell = Column(String(16), nullable=False)
    accuracy_m = Column(Float, nullable=False, default=DEFAULT_ACCURACY_M)
    description = Column(String(MAX_DESCRIPTION_LENGTH), nullable=False, default="")
    status = Column(String(16), nullable=False, default=STATUS_APPROVED)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint(
            "status in (%s)" % ",".join("'%s'" % s for s in STATUSES),
            name="sightings_status_check",
        ),
        CheckConstraint(
            "accuracy_m >= 0 AND accuracy_m <= 1000", name="sightings_accuracy_check"
        ),
    )

    @property
    def lat(self) -> float:
        return self.loc["coordinates"][1]

    @property
    def lng(self) -> float:
        return self.loc["coordinates"][0]


Index("ix_sightings_status_observed_at", Sighting.status, Sighting.observed_at.desc())
Index("ix_sightings_geo_cell", Sighting.geo_cell)
