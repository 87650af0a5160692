import os
from typing import Any, Dict, Optional

from mcp.server.fastmcp import FastMCP

from db import get_session_factory, init_db
from repositories import ListingRepository
from services.content_filter import scan_listing_text
from services.listing_checks import missing_detail_fields, run_automated_checks
from services.quality_scorer import ScoringScheme, score_listing

_db_ready = False


async def _ensure_db() -> None:
    """Create the tables on first use; the MCP server can run without the API."""
    global _db_ready
    if not _db_ready:
        await init_db()
        _db_ready = True


def create_mcp_server(host: Optional[str] = None, port: Optional[int] = None) -> FastMCP:
    resolved_host = host or os.getenv("MCP_HOST", "0.0.0.0")
    resolved_port = port if port is not None else int(os.getenv("MCP_PORT", "8001"))

    server = FastMCP(
        name="Listing Review MCP",
        instructions="Tools for scoring rental listings, running the automated review checks and reading the moderation queue.",
        host=resolved_host,
        port=resolved_port,
    )

    @server.tool(
        name="score_listing",
        description="Score a listing document (details, photos, safetyInfo ...) with the weighted or balanced scheme.",
    )
    async def score_listing_tool(listing: Dict[str, Any], scheme: str = "weighted") -> dict:
        try:
            resolved = ScoringScheme(scheme)
        except ValueError as exc:
            raise ValueError("scheme must be 'weighted' or 'balanced'") from exc
        return score_listing(listing, resolved).to_dict()

    @server.tool(
        name="check_listing",
        description="Run the automated submission checks on a listing document without storing anything.",
    )
    async def check_listing(listing: Dict[str, Any]) -> dict:
        checks = run_automated_checks(listing)
        details = listing.get("details") if isinstance(listing, dict) else None
        return {
            "passed": checks.passed,
            "checks": checks.to_dict(),
            "failedChecks": checks.failed_checks(),
            "missingFields": missing_detail_fields(details),
            "contentWarnings": scan_listing_text(details),
        }

    @server.tool(
        name="review_queue",
        description="List the listings waiting for a moderator, oldest submission first.",
    )
    async def review_queue(limit: int = 25, offset: int = 0) -> dict:
        if limit < 1 or limit > 100:
            raise ValueError("limit must be between 1 and 100")
        if offset < 0:
            raise ValueError("offset must not be negative")

        await _ensure_db()
        async with get_session_factory()() as session:
            listings, total = await ListingRepository(session).list_review_queue(limit=limit, offset=offset)

        items = []
        for listing in listings:
            snapshot = listing.snapshot()
            items.append(
                {
                    "id": listing.id,
                    "ownerId": listing.owner_id,
                    "title": snapshot["details"].get("title"),
                    "qualityScore": listing.quality_score,
                    "submittedAt": listing.submitted_at.isoformat() if listing.submitted_at else None,
                    "quality": score_listing(snapshot, ScoringScheme.BALANCED).to_dict(),
                    "contentWarnings": scan_listing_text(snapshot["details"]),
                }
            )
        return {"total": total, "items": items}

    return server


if __name__ == "__main__":
    create_mcp_server().run("streamable-http")
