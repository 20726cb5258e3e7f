"""
Plain data types shared across Modwarden.

- **case_datatypes.py**: ``CaseAction``, ``NewCase``, ``ModCase`` and
  ``ScheduledAction``, plus unix-second conversion helpers.
"""
