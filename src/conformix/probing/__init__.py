"""Capability probing of the implementation under test."""

from conformix.probing.cache import FeatureCache
from conformix.probing.client import ClientFeatureExtractor
from conformix.probing.prober import CapabilityProber, validate_report
from conformix.probing.server import ServerFeatureExtractor, adapt_scan_report
from conformix.probing.sync import ClientSynchronizer, wait_for_server

__all__ = [
    "CapabilityProber",
    "ClientFeatureExtractor",
    "ClientSynchronizer",
    "FeatureCache",
    "ServerFeatureExtractor",
    "adapt_scan_report",
    "validate_report",
    "wait_for_server",
]
