"""Job engagement and settlement engine."""
