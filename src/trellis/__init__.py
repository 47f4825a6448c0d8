"""
Trellis - test discovery core.

Stable, serializable unique IDs for test containers and test cases, and an
ordered extension point registry for plugging behavior into the hierarchy.
"""

__version__ = "0.1.0"
