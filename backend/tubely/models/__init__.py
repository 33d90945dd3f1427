"""
Models Package for Tubely.

    - VideoRecord: video metadata, including the published asset URLs
"""

from tubely.models.video import VideoRecord


__all__ = ["VideoRecord"]
