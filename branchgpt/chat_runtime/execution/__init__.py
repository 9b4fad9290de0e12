"""Execution pipeline for the chat runtime.

This package contains the chat-turn components:

- **channel**: Provider channel (message projection + pydantic-ai streaming)
- **coordinator**: Turn orchestration (setup -> stream -> finalize)
"""
