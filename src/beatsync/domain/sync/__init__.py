"""Reconciliation core: normalization, identity, change detection, planning."""

from __future__ import annotations

from .batching import BatchWriter, CommitResult
from .changes import coordinates_equal, diff, equivalent
from .identity import IdScheme, clean_identifier, derive_id
from .normalize import NormalizationError, format_time, normalize
from .plan import (
    LocationAnalysis,
    PlannedUpsert,
    ReconciliationPlan,
    SyncDiagnostics,
    WriteAction,
)
from .reconcile import CleanupScope, analyze_locations, reconcile

__all__ = [
    "BatchWriter",
    "CleanupScope",
    "CommitResult",
    "IdScheme",
    "LocationAnalysis",
    "NormalizationError",
    "PlannedUpsert",
    "ReconciliationPlan",
    "SyncDiagnostics",
    "WriteAction",
    "analyze_locations",
    "clean_identifier",
    "coordinates_equal",
    "derive_id",
    "diff",
    "equivalent",
    "format_time",
    "normalize",
    "reconcile",
]
