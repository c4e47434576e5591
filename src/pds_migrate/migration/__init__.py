"""Migration orchestration."""

from .orchestrator import (
    MigrationOrchestrator,
    MigrationStage,
    MigrationState,
    MigrationSummary,
)

__all__ = [
    'MigrationOrchestrator',
    'MigrationStage',
    'MigrationState',
    'MigrationSummary',
]
