"""
Infrastructure layer - external system integrations.
Keeps business logic clean from implementation details.
"""

from .smtp_client import SmtpNotifier

__all__ = ['SmtpNotifier']
