"""
Orchestration layer - composes the oral-exam engines into session operations.
"""

from checkride.orchestration.session_orchestrator import (
    GradedAnswer,
    ServedPrompt,
    SessionLockRegistry,
    SessionOrchestrator,
    SessionResults,
    session_locks,
)

__all__ = [
    "GradedAnswer",
    "ServedPrompt",
    "SessionLockRegistry",
    "SessionOrchestrator",
    "SessionResults",
    "session_locks",
]
