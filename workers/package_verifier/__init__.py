"""package_verifier — assembly attribute rules for shipped packages."""

__version__ = "0.1.0"
VERIFIER_VERSION = "v0"
PACKAGE_NAME = "package_verifier"
SCHEMA_VERSION = "0.1"
