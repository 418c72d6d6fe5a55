"""
Background Jobs for the post workflow.

- escalation_sweep: periodic check of active posts against their windows
"""

from .escalation_sweep import run_escalation_sweep

__all__ = ["run_escalation_sweep"]
