"""Agency booking service."""
