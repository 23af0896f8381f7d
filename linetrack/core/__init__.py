"""Core services for linetrack: persistence, analysis engine and retry loop."""
