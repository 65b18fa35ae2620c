"""
RoomLens: spatial layout analysis and design suggestions for room photos
"""

__version__ = "1.0.0"
