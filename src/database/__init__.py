"""
Database module for Bayanihan Map
Report persistence through SQLAlchemy
"""

from .connection import DatabaseConnection
from .models import Base, Report

__all__ = [
    "DatabaseConnection",
    "Base",
    "Report",
]
