"""
Courses module - course catalogue rows and live-session scheduling.
"""

from innoaccess.modules.courses.models import Course, CourseType

__all__ = ["Course", "CourseType"]
