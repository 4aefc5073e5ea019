"""Application wiring: lifespan and shared dependencies."""
