"""Per-request client details exposed to services through context variables."""

from contextvars import ContextVar

from fastapi import Request

client_ip_ctx: ContextVar[str] = ContextVar("client_ip", default="")
user_agent_ctx: ContextVar[str] = ContextVar("user_agent", default="")


def get_client_ip() -> str:
    return client_ip_ctx.get("")


def get_user_agent() -> str:
    return user_agent_ctx.get("")


async def bind_request_context(request: Request, call_next):
    """HTTP middleware storing the caller's IP and user agent for audit logging."""
    from quadriparlanti.services.analytics_service import client_ip

    client_ip_ctx.set(client_ip(request))
    user_agent_ctx.set((request.headers.get("user-agent") or "")[:500])
    return await call_next(request)
