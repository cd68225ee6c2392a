"""Conductor core - workflow validation, templates, planning and health checks.

Modules:
- ratelimit: token buckets for tool calls and workflow runs
- paths: path validation for caller-supplied workflow files
- workflow: workflow definition parser
- schema: embedded JSON Schema
- validation: multi-stage workflow validation
- templates: built-in workflow templates
- planner: dry-run execution planning
- config, providers, health: installation health check
"""

__version__ = "0.1.0"
