"""
Central constants for the CRM application.
"""
from __future__ import annotations

PLAN_FREE = "free"
PLAN_PRO = "pro"
PLANS = (PLAN_FREE, PLAN_PRO)

# Order matters: it is the order shown in pickers.
INTERACTION_TYPES = ("call", "email", "meeting", "quote", "service", "other")

REMINDER_FILTERS = ("all", "pending", "completed", "overdue")

MIN_PASSWORD_LENGTH = 6

# Upsell banner threshold on the free plan
NEAR_LIMIT_CUSTOMERS = 15

RECENT_INTERACTIONS_LIMIT = 5
