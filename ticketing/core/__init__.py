"""Core configuration, logging, tracing and storage plumbing."""
