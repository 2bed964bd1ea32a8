"""DineDesk: restaurant ordering, kitchen display and back-office API."""

__version__ = "0.1.0"
