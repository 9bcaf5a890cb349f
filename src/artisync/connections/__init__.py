"""
Artifact source connections.
"""

from artisync.connections.github import GitHubArtifactSource

__all__ = ["GitHubArtifactSource"]
