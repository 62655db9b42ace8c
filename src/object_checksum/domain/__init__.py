"""Domain layer - checksum state machine, digests and value objects."""
