"""
REST API module for linetrack.

Provides FastAPI endpoints for:
- Tracked repository management and analysis triggers
- Line-count history, extension breakdown and top files
- Failure ledger inspection
- Per-user file extension preferences
"""
