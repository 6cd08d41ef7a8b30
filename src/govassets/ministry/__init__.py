"""Ministry lifecycle and seat accounting."""
