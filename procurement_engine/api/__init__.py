"""FastAPI application and routers for the procurement engine."""
