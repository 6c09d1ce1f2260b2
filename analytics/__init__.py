"""
Daxue Reader - Analytics Module
Anonymous page-view and AI-usage tracking persisted to a flat JSON file.

Architecture:
    models.py   - Document dataclasses and the ClientIdentity value
    backends.py - JSON file and in-memory persistence
    store.py    - Load/mutate/save tracking and summary aggregation
"""

from analytics.backends import AnalyticsBackend, JsonFileBackend, MemoryBackend
from analytics.models import AnalyticsDocument, ClientIdentity, VisitType
from analytics.store import AnalyticsStore


__all__ = [
    'AnalyticsBackend',
    'JsonFileBackend',
    'MemoryBackend',
    'AnalyticsDocument',
    'ClientIdentity',
    'VisitType',
    'AnalyticsStore',
]
