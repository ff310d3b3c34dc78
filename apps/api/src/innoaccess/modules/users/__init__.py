"""
Users module - account records used for attribution and contact details.
"""

from innoaccess.modules.users.models import User

__all__ = ["User"]
