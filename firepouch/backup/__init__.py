"""
Backup and restore orchestration.

- BackupOrchestrator: remote collections -> local backup store
- RestoreOrchestrator: local backup store -> remote
- fold_sequential: strictly sequential fail-fast processing
"""

from .backup import BackupOrchestrator, BackupResult, BackupState, resolve_names
from .chain import fold_sequential
from .restore import RestoreOrchestrator, RestoreResult, RestoreState

__all__ = [
    "BackupOrchestrator",
    "BackupResult",
    "BackupState",
    "RestoreOrchestrator",
    "RestoreResult",
    "RestoreState",
    "fold_sequential",
    "resolve_names",
]
