#Marks routing as a package.
#Re-exports the geo helpers so other modules import from routing without knowing internal file names.
#No business logic.

from .geo import distance_meters, is_valid_coordinate, validate_coordinate

__all__ = [
    "distance_meters",
    "is_valid_coordinate",
    "validate_coordinate",
]
