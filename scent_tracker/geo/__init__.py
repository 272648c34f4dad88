"""GPS sampling, filtering and distance utilities.

The distance engine in :mod:`.distance` is the single implementation used for
every distance computed by the package.
"""

from .distance import EARTH_RADIUS_M, haversine_distance, haversine_matrix, path_length
from .filtering import FilterConfig, should_accept
from .sampler import (
    GeoSampler,
    LocationProvider,
    PositionOptions,
    ReplayLocationProvider,
    convert_error,
    convert_position,
)

__all__ = [
    "EARTH_RADIUS_M",
    "haversine_distance",
    "haversine_matrix",
    "path_length",
    "FilterConfig",
    "should_accept",
    "GeoSampler",
    "LocationProvider",
    "PositionOptions",
    "ReplayLocationProvider",
    "convert_error",
    "convert_position",
]
