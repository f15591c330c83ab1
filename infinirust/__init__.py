"""Voxel world server, network protocol and client-side world synchronisation."""

__version__ = "0.1.0"