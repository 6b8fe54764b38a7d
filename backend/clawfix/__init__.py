"""ClawFix - diagnostic and fix-script service for OpenClaw installations"""

__version__ = "1.0.0"
