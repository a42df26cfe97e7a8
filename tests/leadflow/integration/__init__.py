"""Integration tests for the leadflow pipeline.

These tests run whole campaigns against a temporary SQLite database:
- Trigger to final status through every stage
- Poll and lead listing projections after a run
"""
