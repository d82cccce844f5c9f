"""Sync engine: job state, page processing, upserts and execution logs."""
