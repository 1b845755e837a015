"""api_compare — baseline comparison of two API listings."""

__version__ = "0.1.0"
COMPARER_VERSION = "v0"
PACKAGE_NAME = "api_compare"
SCHEMA_VERSION = "0.1"
