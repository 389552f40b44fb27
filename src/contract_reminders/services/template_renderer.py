"""
Template rendering for reminder notifications
Mustache-style {{ dotted.path }} substitution over a whitelisted context
"""
import html
import logging
import re
from datetime import date, datetime
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

# {{{ path }}} renders raw, {{ path }} renders escaped when escaping is on
_RAW_PLACEHOLDER = re.compile(r"\{\{\{\s*([A-Za-z_][\w.]*)\s*\}\}\}")
_PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z_][\w.]*)\s*\}\}")


def _format_date(value) -> Optional[str]:
    if isinstance(value, (datetime, date)):
        return value.strftime("%Y-%m-%d")
    return None


def _lookup(context: Dict[str, Any], path: str) -> Any:
    value: Any = context
    for part in path.split("."):
        if not isinstance(value, dict) or part not in value:
            return None
        value = value[part]
    return value


def render_template_string(template: Optional[str], context: Dict[str, Any], escape: bool = False) -> str:
    """
    Render a template string against a context
    
    Unknown placeholders and None values render as empty strings.
    
    Args:
        template: Template text with {{ placeholders }}
        context: Nested dictionary of values
        escape: HTML-escape values of {{ }} placeholders ({{{ }}} is never escaped)
    
    Returns:
        Rendered string
    """
    if not template:
        return ""
    
    def _raw(match):
        value = _lookup(context, match.group(1))
        return "" if value is None else str(value)
    
    def _escaped(match):
        value = _raw(match)
        return html.escape(value) if escape else value
    
    rendered = _RAW_PLACEHOLDER.sub(_raw, template)
    return _PLACEHOLDER.sub(_escaped, rendered)


def build_context(contract=None, tenant=None, organization=None) -> Dict[str, Dict[str, Any]]:
    """
    Build the rendering context from whitelisted fields only
    
    Never pass whole records into templates; only these keys are exposed.
    
    Args:
        contract: Contract record (or None)
        tenant: Tenant record (or None)
        organization: Organization record (or None)
    
    Returns:
        Context dictionary with contract, tenant and organization sections
    """
    return {
        "contract": {
            "title": getattr(contract, "title", None),
            "expiry_date": _format_date(getattr(contract, "expiry_date", None)),
            "effective_date": _format_date(getattr(contract, "effective_date", None)),
        },
        "tenant": {
            "id": getattr(tenant, "id", None),
            "name": getattr(tenant, "display_name", None),
        },
        "organization": {
            "id": getattr(organization, "id", None),
            "name": getattr(organization, "name", None),
        },
    }


def render_reminder(template, context: Dict[str, Any]) -> Dict[str, str]:
    """
    Render subject, html and text for a reminder
    
    Args:
        template: ReminderTemplate or None for the built-in message
        context: Context from build_context()
    
    Returns:
        Dictionary with subject, html and text
    """
    if template is not None:
        return {
            "subject": render_template_string(template.subject, context),
            "html": render_template_string(template.body_html, context, escape=True),
            "text": render_template_string(template.body_text, context),
        }
    
    title = context.get("contract", {}).get("title") or ""
    return {
        "subject": f"Reminder: {title}",
        "html": f"<p>Your contract {html.escape(title)} is due.</p>",
        "text": f"Your contract {title} is due.",
    }
