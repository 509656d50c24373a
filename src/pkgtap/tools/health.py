"""check_health tool -- which providers can run on this machine."""

from __future__ import annotations

from dataclasses import asdict

from mcp.server.fastmcp import Context

from pkgtap import paths
from pkgtap.errors import PkgTapError
from pkgtap.tools._helpers import get_context, internal_error


async def check_health(ctx: Context) -> dict[str, object]:
    """Check every provider's external tool and report the pkgtap directories.

    Use this when an install fails with a missing-tool message, or to see
    which ecosystems are usable before installing.

    Returns:
        available/unavailable counts, one entry per provider (available,
        missing_tool, description) and the bin, packages and lock file paths.
    """
    try:
        app = get_context(ctx)
        report = await app.manager.check_all_provider_health()
        available = sum(1 for h in report if h.available)
        return {
            "available": available,
            "unavailable": len(report) - available,
            "providers": [asdict(h) for h in report],
            "bin_path": str(paths.bin_path()),
            "packages_path": str(paths.packages_path()),
            "lockfile_path": str(paths.lockfile_path()),
        }
    except PkgTapError as exc:
        return {"success": False, "message": str(exc)}
    except Exception as exc:
        await ctx.error(f"Unexpected error in check_health: {exc}")
        return internal_error("check_health", exc)
