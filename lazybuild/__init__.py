"""
lazybuild — demand-driven compilation gate for a multi-entry dev server.
"""

__version__ = "0.1.0"
