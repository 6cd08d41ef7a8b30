"""Account registration, approval and staff management."""
