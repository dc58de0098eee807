"""Finance advisor feature: read-only analytics tools for people and agents."""

from finadvisor.features.advisor.routes import router
from finadvisor.features.advisor.schemas import (
    TOOL_REQUEST_MODELS,
    SalesSummaryResult,
    ToolDefinition,
    ToolListResponse,
    ToolName,
    ToolResult,
    WindowRange,
)
from finadvisor.features.advisor.service import FinanceAdvisorService

__all__ = [
    "TOOL_REQUEST_MODELS",
    "FinanceAdvisorService",
    "SalesSummaryResult",
    "ToolDefinition",
    "ToolListResponse",
    "ToolName",
    "ToolResult",
    "WindowRange",
    "router",
]
