"""Post lifecycle, assignment, escalation and poll engine for the feedback platform."""

__version__ = "1.0.0"
