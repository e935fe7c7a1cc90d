"""HTTP API for the generation orchestrator."""
