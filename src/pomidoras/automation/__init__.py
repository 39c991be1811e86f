"""Automation features for Pomidoras."""

from pomidoras.automation.notifier import NotificationSink, Notifier

__all__ = ["NotificationSink", "Notifier"]
