"""
Build Orchestrator v0.1 - Gated Multi-Agent Build Pipeline

Turns free-text feature requests into dependency-ordered task graphs and
drives them through role executors with artifact handoffs.

Features:
- Keyword-driven requirement parsing with minimal and enhanced planning
- Bounded retry with linear backoff and per-attempt timeouts
- Security gate that blocks deployment, QA review that flags tasks
- Per-build artifact ledger with manifest export and reload
"""

__version__ = "0.1.0"
__author__ = "Build Orchestrator Team"
