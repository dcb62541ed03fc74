"""
Entity API: the FastAPI application built on the entity kernel.

STRUCTURE:
- models/: SQLAlchemy models (BaseModel columns via EntityMixin)
- schemas/: Pydantic create / edit / output DTOs
- services/entity/: registry, repository, generic service, hooks, filters, pagination
- services/permissions/: enforcer, policy adapters, authorization binder
- registrations/: illustrative entity descriptors
- hooks/: domain lifecycle hooks (cascade orphan delete)
- routers/: generic entity dispatcher and hook administration
- core/: error handlers, middlewares, lifespan
"""
