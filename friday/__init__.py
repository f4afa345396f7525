"""
FRIDAY - wake-word voice assistant with screen awareness
"""

__version__ = "1.0.0"
