"""Photobooth share server.

Stores uploaded photos and their metadata, serves share links and
removes photos once their expiry window has passed.
"""

__version__ = "0.1.0"
