"""install_packages tool -- install one or more packages and record them."""

from __future__ import annotations

from mcp.server.fastmcp import Context

from pkgtap.errors import PkgTapError
from pkgtap.tools._helpers import batch_to_dict, get_context, internal_error, split_args


async def install_packages(packages: list[str], ctx: Context) -> dict[str, object]:
    """Install packages from any supported ecosystem.

    Each package is installed independently and in order: one failure never
    stops the others. Installed executables are linked into the pkgtap bin
    directory and every success is recorded in the lock file.

    Args:
        packages: Package ids in the form "provider:package[@version]",
            e.g. "npm:prettier@3.2.0", "cargo:ripgrep", "github:owner/repo".
            The legacy "pkg:provider/package" form is also accepted. A bare
            name like "ripgrep" is looked up in the registry by name, alias
            or package id.

    Returns:
        Batch summary with success_count, failure_count, the failed ids as
        given, an outcome ("all_succeeded", "partial" or "all_failed") and
        per-package results with the provider's message.
    """
    try:
        app = get_context(ctx)
        batch = await app.manager.install_many(split_args(packages))
        return batch_to_dict(batch, "Installed")
    except PkgTapError as exc:
        return {"success": False, "message": str(exc)}
    except Exception as exc:
        await ctx.error(f"Unexpected error in install_packages: {exc}")
        return internal_error("install_packages", exc)
