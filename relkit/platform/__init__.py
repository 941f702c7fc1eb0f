"""Platform abstraction layer: file writes and the platform runtime."""
