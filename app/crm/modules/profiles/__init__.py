"""
Profiles module.

One profile per identity, provisioned at sign-up. Holds display name, business name and plan tier.
Profiles are never deleted by their owner.
"""
