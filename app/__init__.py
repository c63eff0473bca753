"""AniHistory FastAPI application package."""
