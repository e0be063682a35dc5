"""Request dependencies."""

from fastapi import Request

from ..context import AppContext


def get_context(request: Request) -> AppContext:
    """Get the app context from app state."""
    return request.app.state.context
