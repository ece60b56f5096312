"""
Shared module for common utilities used by the hotel order API.

STRUCTURE:
- hotel_shared.config: settings (pydantic), structured logging, constants
  (roles, modules, order statuses, transition graph)
- hotel_shared.infrastructure: SQLAlchemy sessions, correlation ids,
  change events, Redis pool and publisher, circuit breakers
- hotel_shared.security: JWT verification, request claims
- hotel_shared.utils: HTTP exceptions with auto-logging, pydantic schemas

IMPORT EXAMPLES:
    from hotel_shared.config.settings import settings
    from hotel_shared.config.constants import Role, OrderStatus
    from hotel_shared.infrastructure.db import get_db, safe_commit
    from hotel_shared.utils.exceptions import OrderNotFoundError
"""
