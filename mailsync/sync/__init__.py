"""Sync core: history walker, per-account orchestrator, batch runner."""

from mailsync.sync.batch import account_key, run_batch
from mailsync.sync.history import BootstrapResult, HistoryWalker, IncrementalWalk
from mailsync.sync.orchestrator import ProviderFactory, SyncOrchestrator, TokenSource, build_gmail_orchestrator

__all__ = [
    "BootstrapResult",
    "HistoryWalker",
    "IncrementalWalk",
    "ProviderFactory",
    "SyncOrchestrator",
    "TokenSource",
    "account_key",
    "build_gmail_orchestrator",
    "run_batch",
]
