"""
Shared module for infrastructure used by the entity API.

STRUCTURE:
- entity_shared.config: Configuration
  - settings.py: Environment config (Pydantic)
  - logging.py: Structured logging
  - constants.py: Roles, HTTP methods, request-state keys

- entity_shared.infrastructure: Database and request plumbing
  - db.py: SQLAlchemy engine/session factories, transaction(), safe_commit()
  - correlation.py: X-Request-ID middleware and logging filter
  - deadline.py: Per-request deadline propagation

- entity_shared.utils: Utilities
  - exceptions.py: Entity error taxonomy (ENT001..ENT012) with auto-logging

- entity_shared.security: Identity provider
  - auth.py: JWT signing/verification, current_user_context

IMPORT EXAMPLES:
    from entity_shared.config.settings import settings
    from entity_shared.config.logging import get_logger
    from entity_shared.infrastructure.db import get_db, transaction
    from entity_shared.utils.exceptions import EntityNotFoundError
    from entity_shared.security.auth import current_user_context
"""
