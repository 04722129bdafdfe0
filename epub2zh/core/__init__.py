"""
Core pipeline modules

Import the orchestrator directly to keep package import light:

    from epub2zh.core.orchestrator import TaskOrchestrator
"""

__all__ = []
