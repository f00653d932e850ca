# -*- coding: utf-8 -*-
"""
Spot reference data.

Spots (attractions) and their parking facilities are owned by the map/reference data
collaborator. The core only reads them: category lookups for alternative generation,
coordinates for distances, total slot counts for parking estimates.
"""
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from crowdshift.exceptions import InvalidSpot
from crowdshift.utils import haversine_km, normalize_spot_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Spot:
    id: str
    name: str
    category: str
    latitude: float
    longitude: float
    local_name: str = ""
    indoor: bool = False
    open_time: str = "00:00"
    close_time: str = "23:59"
    region: str = "Ooty"

    def is_open(self, hour: int, minute: int = 0) -> bool:
        """Opening hours check ("HH:MM" strings, same-day window)."""
        now = hour * 60 + minute
        oh, om = (int(x) for x in self.open_time.split(":"))
        ch, cm = (int(x) for x in self.close_time.split(":"))
        return oh * 60 + om <= now < ch * 60 + cm

    @property
    def coordinates(self) -> Tuple[float, float]:
        return (self.latitude, self.longitude)


@dataclass(frozen=True)
class ParkingFacility:
    id: str
    name: str
    total_slots: int
    spot_id: Optional[str] = None
    latitude: float = 0.0
    longitude: float = 0.0


class SpotDirectory:
    """Read-only index over spots and parking facilities."""

    def __init__(self, spots: Iterable[Spot], parking: Iterable[ParkingFacility] = ()):
        self._spots: Dict[str, Spot] = {}
        for spot in spots:
            if spot.id in self._spots:
                raise ValueError(f"Duplicate spot id: {spot.id}")
            self._spots[spot.id] = spot
        self._parking_by_spot: Dict[str, ParkingFacility] = {}
        self._parking: List[ParkingFacility] = list(parking)
        for facility in self._parking:
            if facility.spot_id:
                self._parking_by_spot.setdefault(facility.spot_id, facility)

    @classmethod
    def from_json(cls, path) -> "SpotDirectory":
        """Load spots.json ({"spots": [...], "parking": [...]})."""
        path = Path(path)
        with open(path, encoding="utf-8") as f:
            raw = json.load(f)

        spots = [
            Spot(
                id=s["id"],
                name=s["name"],
                category=s["category"],
                latitude=float(s["latitude"]),
                longitude=float(s["longitude"]),
                local_name=s.get("local_name", ""),
                indoor=bool(s.get("indoor", False)),
                open_time=s.get("open_time", "00:00"),
                close_time=s.get("close_time", "23:59"),
                region=s.get("region", "Ooty"),
            )
            for s in raw.get("spots", [])
        ]
        parking = [
            ParkingFacility(
                id=p["id"],
                name=p["name"],
                total_slots=int(p["total_slots"]),
                spot_id=p.get("spot_id"),
                latitude=float(p.get("latitude", 0.0)),
                longitude=float(p.get("longitude", 0.0)),
            )
            for p in raw.get("parking", [])
        ]
        logger.info("Loaded %d spots and %d parking facilities from %s",
                    len(spots), len(parking), path.name)
        return cls(spots, parking)

    # ----- lookups -----------------------------------------------------------

    def __len__(self):
        return len(self._spots)

    def __contains__(self, spot_id):
        return spot_id in self._spots

    @property
    def spots(self) -> List[Spot]:
        return list(self._spots.values())

    @property
    def spot_ids(self) -> List[str]:
        return list(self._spots.keys())

    @property
    def categories(self) -> List[str]:
        return sorted({s.category for s in self._spots.values()})

    def get_spot_by_id(self, spot_id: str) -> Spot:
        try:
            return self._spots[spot_id]
        except KeyError:
            raise InvalidSpot(spot_id) from None

    def list_spots_by_category(self, category: str) -> List[Spot]:
        return [s for s in self._spots.values() if s.category == category]

    def find_spot(self, query: str) -> Spot:
        """
        Resolve a spot by id, exact normalized name, or partial name match.

        A partial match must be unique; "garden" matching two spots is InvalidSpot.
        """
        if query in self._spots:
            return self._spots[query]

        key = normalize_spot_name(query)
        if not key:
            raise InvalidSpot(query)

        for spot in self._spots.values():
            if key in (normalize_spot_name(spot.name), normalize_spot_name(spot.id)):
                return spot
        matches = [
            spot for spot in self._spots.values()
            if key in normalize_spot_name(spot.name) or (
                spot.local_name and query.strip() in spot.local_name
            )
        ]
        if len(matches) > 1:
            logger.info("Ambiguous spot query %r matches %s", query, [s.id for s in matches])
        if len(matches) != 1:
            raise InvalidSpot(query)
        return matches[0]

    def parking_for_spot(self, spot_id: str) -> Optional[ParkingFacility]:
        return self._parking_by_spot.get(spot_id)

    @property
    def parking(self) -> List[ParkingFacility]:
        return list(self._parking)

    def nearest_spots(self, lat: float, lng: float, limit: int = 3) -> List[Tuple[Spot, float]]:
        """Spots sorted by distance from (lat, lng), with distances in km."""
        distances = [
            (spot, haversine_km(lat, lng, spot.latitude, spot.longitude))
            for spot in self._spots.values()
        ]
        distances.sort(key=lambda x: x[1])
        return distances[:limit]
