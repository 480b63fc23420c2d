"""
Customers module.

Scope:
- Customers CRUD (list/search + create + detail/update + delete)
- Interactions log per customer (call, email, meeting, quote, service, other)
- Deleting a customer cascades to its interactions and reminders
"""
