"""Asset upload and two-stage approval."""
