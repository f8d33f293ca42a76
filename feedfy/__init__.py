"""
feedfy - community platform API (courses, social feed, chat, notifications)
on top of a hosted database backend.
"""

__version__ = '0.1.0'
