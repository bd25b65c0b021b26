"""VPP Toolkit - pack and unpack Volition VPP version 3 packages."""

__version__ = "0.1.0"
