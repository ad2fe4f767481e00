"""FastAPI dependency injection helpers.

Usage in a route::

    @router.get("/health")
    async def health(ctx: Annotated[RelayContext, Depends(get_context)]) -> ...:
        ...
"""

from __future__ import annotations

from fastapi import Request

from push_relay.context import RelayContext  # noqa: TC001
from push_relay.errors.definitions import ErrContextNotReady


def get_context(request: Request) -> RelayContext:
    """Retrieve the relay context from ``app.state``.

    The context is stored on ``app.state.context`` during lifespan startup.

    Raises:
        RelayError: 503 if the context is not initialized.
    """
    ctx: RelayContext | None = getattr(request.app.state, "context", None)
    if ctx is None or not ctx.is_initialized:
        raise ErrContextNotReady
    return ctx
