from .routes import jobs_bp  # noqa: F401
