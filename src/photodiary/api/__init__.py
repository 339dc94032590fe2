"""HTTP API of the photodiary image proxy."""
