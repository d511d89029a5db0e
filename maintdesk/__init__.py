"""
Maintenance Ticket Desk
"""
__version__ = "1.0.0"
