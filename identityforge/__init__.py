"""
IdentityForge - Identity-Based Habit Tracking

A self-hosted Python system for declaring who you want to become,
attaching habits to that identity, and casting a vote every time
you act like that person.

Every action is a vote for the type of person you wish to become.
"""

__version__ = "0.1.0"
