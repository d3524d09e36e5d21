"""HTTP API for the Webchat Guard service."""
