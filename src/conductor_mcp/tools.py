"""MCP tool definitions for Conductor.

This module is the definitive list of tools the server exposes. Input keys
are wire-stable: clients generate calls from these schemas.
"""

from mcp.types import Tool

WORKFLOW_VALIDATE = "workflow_validate"
WORKFLOW_SCHEMA = "workflow_schema"
LIST_TEMPLATES = "list_templates"
SCAFFOLD = "scaffold"
WORKFLOW_RUN = "workflow_run"
HEALTH = "health"


def get_tools() -> list[Tool]:
    """Get the list of all MCP tools for Conductor workflow management."""
    return [
        # ============================================================================
        # Authoring Tools
        # ============================================================================
        Tool(
            name=WORKFLOW_VALIDATE,
            description="Validate workflow YAML content without executing it. "
                        "Returns structured errors with line numbers and suggestions, plus best-practice warnings. "
                        "Common pattern: scaffold() → edit → workflow_validate() → workflow_run(dry_run=true).",
            inputSchema={
                "type": "object",
                "properties": {
                    "workflow_yaml": {
                        "type": "string",
                        "description": "The complete YAML content of the workflow to validate (max 10 MiB)"
                    }
                },
                "required": ["workflow_yaml"]
            }
        ),
        Tool(
            name=WORKFLOW_SCHEMA,
            description="Return the JSON Schema for Conductor workflow definitions. "
                        "Use this for accurate workflow generation.",
            inputSchema={
                "type": "object",
                "properties": {}
            }
        ),
        # ============================================================================
        # Template Tools
        # ============================================================================
        Tool(
            name=LIST_TEMPLATES,
            description="List available workflow templates with descriptions and parameters. "
                        "Templates can be filtered by category.",
            inputSchema={
                "type": "object",
                "properties": {
                    "category": {
                        "type": "string",
                        "description": "Filter by exact category (e.g., 'Basic', 'Development', 'Text Processing')"
                    }
                }
            }
        ),
        Tool(
            name=SCAFFOLD,
            description="Generate a workflow from a template. Returns valid workflow YAML ready for customization. "
                        "Nothing is written to disk.",
            inputSchema={
                "type": "object",
                "properties": {
                    "template": {
                        "type": "string",
                        "description": "Template name (from list_templates)"
                    },
                    "name": {
                        "type": "string",
                        "description": "Name for the generated workflow"
                    },
                    "parameters": {
                        "type": "object",
                        "description": "Template parameter values (string values; see list_templates)"
                    }
                },
                "required": ["template", "name"]
            }
        ),
        # ============================================================================
        # Execution Tools
        # ============================================================================
        Tool(
            name=WORKFLOW_RUN,
            description="Plan a workflow run. IMPORTANT: dry_run defaults to true for safety. "
                        "With dry_run=true, checks inputs and returns the ordered step plan without running anything. "
                        "Real execution is not available through this tool; use the Conductor CLI.",
            inputSchema={
                "type": "object",
                "properties": {
                    "workflow_path": {
                        "type": "string",
                        "description": "Path to the workflow YAML file (within the current directory "
                                       "or CONDUCTOR_ALLOWED_PATHS)"
                    },
                    "inputs": {
                        "type": "object",
                        "description": "Input values for workflow parameters"
                    },
                    "dry_run": {
                        "type": "boolean",
                        "description": "If true, show execution plan without running (default: true)",
                        "default": True
                    }
                },
                "required": ["workflow_path"]
            }
        ),
        # ============================================================================
        # Diagnostics
        # ============================================================================
        Tool(
            name=HEALTH,
            description="Check Conductor installation and configuration health. "
                        "Returns diagnostic information and remediation steps.",
            inputSchema={
                "type": "object",
                "properties": {}
            }
        ),
    ]
