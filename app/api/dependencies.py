"""FastAPI dependencies resolving the process context and the caller."""

from typing import Annotated

from fastapi import Depends, Request

from app.context import AppContext
from app.domain.exceptions import AuthenticationError
from app.infrastructure.auth import Identity


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def get_identity(request: Request) -> Identity:
    """Identity set by the bearer auth middleware."""
    identity = getattr(request.state, "identity", None)
    if identity is None:
        raise AuthenticationError("Missing bearer token")
    return identity


ContextDep = Annotated[AppContext, Depends(get_context)]
IdentityDep = Annotated[Identity, Depends(get_identity)]
