"""
Formal Verification Module

Provides runtime verification of critical system invariants.
"""

from shared.verification.prerequisite_graph import (
    NodeColor,
    PrerequisiteGraph,
    assert_acyclic,
)

__all__ = [
    'PrerequisiteGraph',
    'NodeColor',
    'assert_acyclic',
]
