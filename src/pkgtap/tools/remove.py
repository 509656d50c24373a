"""remove_packages tool -- uninstall packages and drop their lock records."""

from __future__ import annotations

from mcp.server.fastmcp import Context

from pkgtap.errors import PkgTapError
from pkgtap.tools._helpers import batch_to_dict, get_context, internal_error, split_args


async def remove_packages(packages: list[str], ctx: Context) -> dict[str, object]:
    """Remove installed packages and the executables they exposed.

    Use list_installed to see the ids of installed packages.

    Args:
        packages: Package ids in the form "provider:package", as shown by
            list_installed.

    Returns:
        Batch summary with success_count, failure_count, failures, outcome
        and per-package results.
    """
    try:
        app = get_context(ctx)
        batch = await app.manager.remove_many(split_args(packages))
        return batch_to_dict(batch, "Removed")
    except PkgTapError as exc:
        return {"success": False, "message": str(exc)}
    except Exception as exc:
        await ctx.error(f"Unexpected error in remove_packages: {exc}")
        return internal_error("remove_packages", exc)
