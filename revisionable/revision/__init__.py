"""Revision tracking - policy, capture, emission and display of field changes."""
