"""
Shared Kernel Module
====================

Generic infrastructure used by every module: structured logging and the
HTTP middleware stack.

DO NOT add business logic to the shared kernel.
"""

__version__ = "0.0.1"
