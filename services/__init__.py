"""
Services package for the Affect Coach Engine.

This package contains in-memory stores used by a running session:
- Transcript store: scored text turns from the transcript collaborator
"""
