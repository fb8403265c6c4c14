"""Workboard - local-first workspace state engine for a personal kanban board."""
