from .routes import topsheets_bp  # noqa: F401
