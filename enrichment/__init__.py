"""
Assessment enrichment: concurrent extraction, failure isolation and fusion.
"""

from .orchestrator import EnrichmentOrchestrator

__all__ = ['EnrichmentOrchestrator']
