"""Markdown rendering collaborators."""
