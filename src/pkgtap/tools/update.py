"""update_packages tool -- move installed packages to their newest version."""

from __future__ import annotations

from mcp.server.fastmcp import Context

from pkgtap.errors import PkgTapError
from pkgtap.tools._helpers import batch_to_dict, get_context, internal_error, split_args


async def update_packages(
    ctx: Context,
    packages: list[str] | None = None,
) -> dict[str, object]:
    """Update packages to the newest available version.

    With explicit ids, each package is reinstalled at the newest version its
    provider reports (falling back to the registry version). Without ids,
    every installed package whose registry version is newer than the
    recorded one is updated; up-to-date packages are skipped.

    Args:
        packages: Package ids to update. Leave empty to update everything
            that has an update available.

    Returns:
        Batch summary with success_count, failure_count, failures, outcome
        and per-package results.
    """
    try:
        app = get_context(ctx)
        args = split_args(packages or [])
        if args:
            batch = await app.manager.update_many(args)
        else:
            batch = await app.manager.update_all()
        return batch_to_dict(batch, "Updated")
    except PkgTapError as exc:
        return {"success": False, "message": str(exc)}
    except Exception as exc:
        await ctx.error(f"Unexpected error in update_packages: {exc}")
        return internal_error("update_packages", exc)
