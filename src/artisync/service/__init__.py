"""
Long-running deployer service.
"""

from artisync.service.server import ArtisyncService, run_service

__all__ = ["ArtisyncService", "run_service"]
