"""
Tests for reminder template rendering
"""
from datetime import datetime
from types import SimpleNamespace

from contract_reminders.services.template_renderer import (
    build_context,
    render_reminder,
    render_template_string,
)


class TestRenderTemplateString:
    """Test placeholder substitution"""
    
    def test_dotted_paths(self):
        context = {"contract": {"title": "Lease 12B"}, "tenant": {"name": "Jane"}}
        
        rendered = render_template_string("{{contract.title}} for {{ tenant.name }}", context)
        
        assert rendered == "Lease 12B for Jane"
    
    def test_missing_values_render_empty(self):
        """Test unknown keys and None values"""
        context = {"contract": {"title": None}}
        
        assert render_template_string("[{{ contract.title }}][{{ nope.x }}]", context) == "[][]"
    
    def test_escaping(self):
        """Test that {{ }} escapes and {{{ }}} does not when escaping is on"""
        context = {"tenant": {"name": "<b>Jane & Co</b>"}}
        
        escaped = render_template_string("{{ tenant.name }}", context, escape=True)
        raw = render_template_string("{{{ tenant.name }}}", context, escape=True)
        
        assert escaped == "&lt;b&gt;Jane &amp; Co&lt;/b&gt;"
        assert raw == "<b>Jane & Co</b>"
    
    def test_empty_template(self):
        assert render_template_string(None, {}) == ""


class TestBuildContext:
    """Test the whitelisted rendering context"""
    
    def test_whitelisted_fields_only(self):
        contract = SimpleNamespace(
            title="Lease 12B",
            expiry_date=datetime(2026, 4, 1, 9, 30),
            effective_date=None,
            parties=[{"contact": "secret@example.com"}],
        )
        tenant = SimpleNamespace(id="t-1", display_name="Jane")
        organization = SimpleNamespace(id=1, name="Acme")
        
        context = build_context(contract=contract, tenant=tenant, organization=organization)
        
        assert context == {
            "contract": {"title": "Lease 12B", "expiry_date": "2026-04-01", "effective_date": None},
            "tenant": {"id": "t-1", "name": "Jane"},
            "organization": {"id": 1, "name": "Acme"},
        }
    
    def test_missing_collaborators(self):
        context = build_context()
        
        assert context["tenant"] == {"id": None, "name": None}
        assert context["contract"]["title"] is None


class TestRenderReminder:
    """Test full reminder rendering"""
    
    def test_template_html_is_escaped(self):
        template = SimpleNamespace(
            subject="Renewal: {{ contract.title }}",
            body_html="<p>{{ contract.title }}</p>",
            body_text="{{ contract.title }}",
        )
        context = {"contract": {"title": "A & B"}}
        
        rendered = render_reminder(template, context)
        
        assert rendered == {
            "subject": "Renewal: A & B",
            "html": "<p>A &amp; B</p>",
            "text": "A & B",
        }
    
    def test_fallback_without_template(self):
        rendered = render_reminder(None, {"contract": {"title": "Lease 12B"}})
        
        assert rendered["subject"] == "Reminder: Lease 12B"
        assert rendered["html"] == "<p>Your contract Lease 12B is due.</p>"
        assert rendered["text"] == "Your contract Lease 12B is due."
