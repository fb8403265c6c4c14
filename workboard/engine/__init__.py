"""Workspace state engine: models, mutations, history, persistence and sync."""
