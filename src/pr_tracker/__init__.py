"""
pr-tracker: personal record detection and exercise recommendations.
"""

__version__ = "0.1.0"
