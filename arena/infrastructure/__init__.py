"""Infrastructure Layer: process-level wiring (logging) for the host service."""
