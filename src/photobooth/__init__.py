"""Photobooth capture-and-sync core.

Keeps captured photos safe on the device and syncs them to the share
server in the background.
"""

__version__ = "0.1.0"
