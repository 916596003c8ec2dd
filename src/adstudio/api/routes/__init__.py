"""API route modules."""

from adstudio.api.routes import assets, health, keyframes, projects, webhooks

__all__ = ["health", "projects", "assets", "keyframes", "webhooks"]
