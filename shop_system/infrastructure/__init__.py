"""
Infrastructure Layer - External Collaborators

This layer contains:
- Event store (append-only streams, one per item)
- Event serialization (JSON with UTC timestamps)
- Repository (load by replay, save and mark committed)

Key principle: All infrastructure is REPLACEABLE.
The domain layer knows nothing about this layer (dependency inversion).
"""
