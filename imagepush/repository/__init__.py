"""Artifact repository access.

This module handles AQL searches and property writes against the
repository that receives pushed images.
"""

from imagepush.repository.client import RepositoryClient

__all__ = ["RepositoryClient"]
