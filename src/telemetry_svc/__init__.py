"""
Telemetry Service - session-grouped telemetry for an AI development platform

Provides:
- Typed event recording (prompt, plan, artifact, feedback, delta, outcome, system, error)
- Explicit session lifecycle with per-session event logs
- Lazily recomputed analytics (success rate, quality, top prompts, common issues)
- Retention pruning and JSON/CSV export
"""

__version__ = "0.1.0"
