"""
studiobook - weekly studio availability and billing calendar.
"""

__version__ = "0.1.0"
