"""
API module exposing the platform over HTTP.
"""

from .rest_api import CourseClaimRestAPI

__all__ = [
    "CourseClaimRestAPI",
]
