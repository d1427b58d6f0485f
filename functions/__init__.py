"""
Database-triggered functions.

- ChangeNotifier: sends a fixed push notification to all subscribers
  whenever data under the watched path is created, updated or deleted
"""

from functions.change_notifier import FUNCTION_NAME, ChangeNotifier

__all__ = [
    "FUNCTION_NAME",
    "ChangeNotifier",
]
