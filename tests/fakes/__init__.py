"""In-memory test doubles for the buckets service and transport."""
