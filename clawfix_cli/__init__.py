"""
ClawFix CLI - scan OpenClaw diagnostics locally or through a ClawFix server
"""

__version__ = "1.0.0"
