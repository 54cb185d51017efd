import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import geo
from .errors import PersistenceError
from .models import STATUS_APPROVED, Sighting
from .schemas import parse_sighting

logger = logging.getLogger("sighting-api.store")

DEFAULT_WINDOW_MINUTES = 120
MAX_RECENT = 500
MAX_NEARBY_RADIUS_M = 2000.0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def coerce_window_minutes(value: Any) -> float:
    """Window length in minutes; anything non-numeric or negative falls back to the default."""
    if value is None or isinstance(value, bool):
        return DEFAULT_WINDOW_MINUTES
    try:
        minutes = float(value.strip() if isinstance(value, str) else value)
    except (TypeError, ValueError):
        return DEFAULT_WINDOW_MINUTES
    if not math.isfinite(minutes) or minutes < 0:
        return DEFAULT_WINDOW_MINUTES
    return minutes


class SightingStore:
    """Create and query sightings through one SQLAlchemy session."""

    def __init__(self, db: Session):
        self.db = db

    def create(self, payload: Any) -> int:
        """Validate a create payload (either wire shape) and persist it.

        Raises ``ValidationError`` before touching the database and
        ``PersistenceError`` if the write fails. Returns the new id.
        """
        data = parse_sighting(payload)
        now = _utcnow()

        row = Sighting(
            observed_at=data.observed_at or now,
            loc=geo.point(data.lng, data.lat),
            geo_cell=geo.geo_cell(data.lat, data.lng),
            accuracy_m=data.accuracy_m,
            description=data.description,
            status=STATUS_APPROVED,
            created_at=now,
        )
        try:
            self.db.add(row)
            self.db.commit()
            self.db.refresh(row)
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Failed to save sighting at lat=%s lng=%s", data.lat, data.lng)
            raise PersistenceError("failed to save sighting") from exc

        logger.info("Saved sighting id=%s lat=%s lng=%s", row.id, data.lat, data.lng)
        return row.id

    def find_latest_approved(self) -> Optional[Sighting]:
        stmt = (
            select(Sighting)
            .where(Sighting.status == STATUS_APPROVED)
            .order_by(Sighting.observed_at.desc(), Sighting.id.desc())
            .limit(1)
        )
        try:
            return self.db.execute(stmt).scalars().first()
        except SQLAlchemyError as exc:
            logger.exception("Failed to query latest sighting")
            raise PersistenceError("failed to query latest sighting") from exc

    def find_recent(
        self,
        window_minutes: Any = DEFAULT_WINDOW_MINUTES,
        limit: int = MAX_RECENT,
        now: Optional[datetime] = None,
    ) -> List[Sighting]:
        minutes = coerce_window_minutes(window_minutes)
        try:
            since = (now or _utcnow()) - timedelta(minutes=minutes)
        except OverflowError:
            since = datetime(1970, 1, 1, tzinfo=timezone.utc)
        limit = max(0, min(int(limit), MAX_RECENT))

        stmt = (
            select(Sighting)
            .where(Sighting.status == STATUS_APPROVED, Sighting.observed_at >= since)
            .order_by(Sighting.observed_at.desc(), Sighting.id.desc())
            .limit(limit)
        )
        try:
            return list(self.db.execute(stmt).scalars())
        except SQLAlchemyError as exc:
            logger.exception("Failed to query sightings since %s", since.isoformat())
            raise PersistenceError("failed to query recent sightings") from exc

    def find_nearby(
        self, lat: float, lng: float, radius_m: float = 1000.0, limit: int = MAX_RECENT
    ) -> List[Tuple[Sighting, float]]:
        """Approved sightings within radius_m of a point, nearest first.

        radius_m is clamped to [0, MAX_NEARBY_RADIUS_M] and limit to [0, MAX_RECENT].
        """
        radius_m = min(max(float(radius_m), 0.0), MAX_NEARBY_RADIUS_M)
        limit = max(0, min(int(limit), MAX_RECENT))
        cells = geo.covering_cells(lat, lng, radius_m)

        stmt = select(Sighting).where(
            Sighting.status == STATUS_APPROVED, Sighting.geo_cell.in_(cells)
        )
        try:
            candidates = list(self.db.execute(stmt).scalars())
        except SQLAlchemyError as exc:
            logger.exception("Failed to query sightings near lat=%s lng=%s", lat, lng)
            raise PersistenceError("failed to query nearby sightings") from exc

        matches = []
        for row in candidates:
            distance = geo.haversine_m(lat, lng, row.lat, row.lng)
            if distance <= radius_m:
                matches.append((row, distance))
        matches.sort(key=lambda pair: pair[1])
        return matches[:limit]

    def count(self) -> int:
        try:
            return self.db.execute(select(func.count(Sighting.id))).scalar_one()
        except SQLAlchemyError as exc:
            logger.exception("Failed to count sightings")
            raise PersistenceError("failed to count sightings") from exc
