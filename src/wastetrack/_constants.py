"""Internal constants shared across the library."""

import re

VEHICLE_ID_PATTERN = re.compile(r"^[A-Z]{2}\d{2}[A-Z]{2}\d{4}$")

#: Samples expire this many days after their timestamp.
HISTORY_RETENTION_DAYS = 30
HISTORY_RETENTION_SECONDS = HISTORY_RETENTION_DAYS * 24 * 3600

DEFAULT_HISTORY_LIMIT = 1000
MAX_HISTORY_LIMIT = 1000

DEFAULT_NEARBY_RADIUS_KM = 5.0

#: Kilometres per degree of latitude, used by the bounding-box approximation.
KM_PER_DEGREE = 111.0

UNKNOWN_DRIVER_NAME = "Unknown"
STORE_UNAVAILABLE_REASON = "store unavailable"

#: Fanout group key for the unscoped "all vehicles" audience.
ALL_VEHICLES_GROUP = "*"

DEFAULT_OBSERVER_QUEUE_SIZE = 64
