"""
Enrollments module - course access records and free self-enrollment.
"""

from .router import router

__all__ = ["router"]
