"""
Rulebook Module
===============

Bounded context for administrator-authored configuration.

Responsibilities:
- Validate SLA policies (one enabled policy per priority), assignment rules,
  escalation rules, approval forms and notification settings
- Load them from YAML and hot-reload on change (watchdog)
- Hand out immutable snapshots so each operation sees one consistent rule set
"""

__version__ = "1.0.0"
