"""
healthtrends - time-series analytics for daily health logs
"""

__version__ = "0.1.0"
