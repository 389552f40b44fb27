"""
Contract reminder scheduling and delivery for the property-management backend
"""

__version__ = "0.1.0"
