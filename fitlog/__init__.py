"""
FitLog - offline-first data layer for a workout tracker
"""

__version__ = "0.1.0"
