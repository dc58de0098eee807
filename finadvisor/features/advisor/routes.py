"""API routes for the finance advisor tools.

Every tool call answers with the same `{success, tool, result|error}`
envelope that agents receive; the HTTP status mirrors the error code.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Response

from finadvisor.features.advisor.deps import get_advisor_service
from finadvisor.features.advisor.schemas import ToolListResponse, ToolResult
from finadvisor.features.advisor.service import FinanceAdvisorService

router = APIRouter(prefix="/advisor", tags=["advisor"])

AdvisorService = Annotated[FinanceAdvisorService, Depends(get_advisor_service)]


@router.get(
    "/tools",
    response_model=ToolListResponse,
    summary="List advisor tools",
    description="JSON schemas of every tool's parameters, for agent tool-calling.",
)
async def list_tools(service: AdvisorService) -> ToolListResponse:
    """List available tools."""
    return ToolListResponse(tools=service.tool_definitions())


@router.post(
    "/tools/{tool}",
    response_model=ToolResult,
    summary="Run an advisor tool",
    description="""
Run one analytics tool over the sales event store.

**Tools**: fetch_timeseries, top_products, bottom_products, forecast_revenue,
detect_anomalies, simulate_discount, sales_summary.

Windows (`timeRange` week/month/quarter/year) end at `asOf` (default today,
UTC) and are inclusive. Parameters are validated before any data is read;
invalid parameters return `success=false` with code `VALIDATION_ERROR`.

Example:
```json
{"timeRange": "month", "sortBy": "revenue", "limit": 5}
```
""",
)
async def run_tool(
    tool: str,
    response: Response,
    service: AdvisorService,
    params: Annotated[dict[str, Any] | None, Body()] = None,
) -> ToolResult:
    """Execute a tool and return its envelope."""
    result = await service.execute(tool, params)
    response.status_code = result.http_status
    return result
