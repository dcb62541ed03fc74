"""Application wiring: exception handlers, middlewares and lifespan."""
