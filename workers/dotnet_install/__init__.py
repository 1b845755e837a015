"""dotnet_install — runs dotnet-install scripts for requested runtimes and SDKs."""

__version__ = "0.1.0"
INSTALLER_VERSION = "v0"
PACKAGE_NAME = "dotnet_install"
SCHEMA_VERSION = "0.1"
