"""Access graph for IAM-style policies: model, matching, conditions, guards and graph."""

__version__ = "0.1.0"

__all__ = ["model", "matching", "conditions", "guards", "graph"]