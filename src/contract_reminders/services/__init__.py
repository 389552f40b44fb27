"""
Reminder pipeline services
"""
