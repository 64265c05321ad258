"""
Streetwise - campus safety map client for Campus Pulse+
"""

__version__ = "1.0.0"
