"""
Shared Infrastructure
=====================

Low-level technical concerns:
- Structured JSON logging
- Latency measurement
"""
