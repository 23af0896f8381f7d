"""
Repository analysis engine

Exports:
- AnalysisOrchestrator: incremental per-commit crawl with failure isolation
- CommitAnalyzer: per-extension line totals for one checked-out tree
- CheckoutLeaseRegistry / CheckoutSession: per-repository working-copy lease
- AnalysisState, AnalysisResult, CommitLineCounts, RankedFile
"""

from .commit_analyzer import CommitAnalyzer, normalize_extensions
from .lease import CheckoutLeaseRegistry, CheckoutSession
from .models import AnalysisResult, AnalysisState, CommitLineCounts, RankedFile
from .orchestrator import AnalysisOrchestrator

__all__ = [
    "AnalysisOrchestrator",
    "AnalysisResult",
    "AnalysisState",
    "CheckoutLeaseRegistry",
    "CheckoutSession",
    "CommitAnalyzer",
    "CommitLineCounts",
    "RankedFile",
    "normalize_extensions",
]
