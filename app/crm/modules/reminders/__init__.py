"""
Reminders module.

Follow-up reminders tied to a customer, with a pending/completed flag.
"""
