"""Common utilities for Crowdshift."""
import math
import re

import pandas as pd

EARTH_RADIUS_KM = 6371.0


def normalize_spot_name(name):
    """Normalize a spot name for lookups ("Ooty Lake (Boating)" -> "ootylake")."""
    if name is None or (not isinstance(name, str) and pd.isna(name)):
        return ""
    name = str(name)
    name = re.sub(r"\([^)]*\)", "", name)
    name = re.sub(r"\[[^\]]*\]", "", name)
    name = re.sub(r"[^\w]", "", name.lower())
    return name.strip()


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in kilometres."""
    lat1_r, lat2_r = math.radians(lat1), math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def clamp(value, low=0.0, high=100.0):
    return max(low, min(high, value))
