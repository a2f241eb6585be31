"""Courts app package: the catalogue of bookable courts."""
