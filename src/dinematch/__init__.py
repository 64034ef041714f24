"""
DineMatch - event-driven matching, arrival codes and trust scores for group dining plans.
"""

__version__ = "0.1.0"
