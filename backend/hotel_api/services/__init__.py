"""
Services module for business logic.

- domain/: order lifecycle and menu management (USE THESE from routers)
- permissions/: principal, tenancy guard, permission matrix
- events/: change bus and notification sinks
"""
