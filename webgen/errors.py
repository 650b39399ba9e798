from __future__ import annotations


class WebgenError(Exception):
    pass


class ConfigurationError(WebgenError):
    """Build-fatal problem in the configuration or in content metadata."""


class ContentRenderError(WebgenError):
    """Problem scoped to a single content; the build goes on without it."""

    def __init__(self, subject: str, message: str):
        super().__init__(f"[{subject}] {message}")
        self.subject = subject


class StructuralFileError(WebgenError):
    """A partial or an included file could not be read."""
