"""
api_listing — public API surface reader for compiled .NET assemblies.

Produces a canonical, comparable ApiListing (the baseline artifact) from
a PE image's ECMA-335 metadata tables, or loads one persisted earlier.
"""

__version__ = "0.1.0"
READER_VERSION = "v0"
PACKAGE_NAME = "api_listing"
SCHEMA_VERSION = "0.1"
