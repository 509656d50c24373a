"""Helpers shared by the MCP tool functions."""

from __future__ import annotations

from dataclasses import asdict
from typing import TYPE_CHECKING

from mcp.server.fastmcp import Context

from pkgtap.models import BatchResult

if TYPE_CHECKING:
    from pkgtap.server import AppContext


def get_context(ctx: Context) -> AppContext:
    """Extract AppContext from FastMCP's lifespan context.

    Raises TypeError if the lifespan context is not an AppContext instance.
    """
    from pkgtap.server import AppContext

    app = ctx.request_context.lifespan_context
    if not isinstance(app, AppContext):
        msg = (
            f"Expected AppContext in lifespan_context, got {type(app).__name__}. "
            "Is the server configured with app_lifespan?"
        )
        raise TypeError(msg)
    return app


def split_args(packages: str | list[str]) -> list[str]:
    """Accept a list or a comma/whitespace separated string of package ids."""
    if isinstance(packages, str):
        packages = packages.replace(",", " ").split()
    return [p.strip() for p in packages if p and p.strip()]


def batch_to_dict(batch: BatchResult, verb: str) -> dict[str, object]:
    """Serialize a batch with its outcome and a one-line summary."""
    summary = f"{verb} {batch.success_count} package(s)"
    if batch.failure_count:
        summary += f", {batch.failure_count} failed: {', '.join(batch.failures)}"
    return asdict(batch) | {"outcome": batch.outcome.value, "message": summary + "."}


def internal_error(tool: str, exc: Exception) -> dict[str, object]:
    return {
        "success": False,
        "message": f"Internal error in {tool}: {type(exc).__name__}",
    }
