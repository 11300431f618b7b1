"""Pydantic Schemas: validation of collaborator-supplied data at the core boundary.

Invariants:
    - Schemas validate once, at the boundary; core functions assume validated values
    - Factories return the model or a Rejection, never raise ValidationError outward
"""
