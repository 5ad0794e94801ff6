"""LangChain agent tools for Xero reporting operations.

This module provides LangChain tools that wrap the XeroClient and the
Reconciler for use by an AI agent. Tools handle:
- Actual vs budget comparisons (per metric, or every section)
- Report fetching (Profit and Loss, Budget Summary, budgets)
- Reference data (accounts, contacts)
- Aged receivables and payables
- Error handling and logging

Tools get their Xero client from the ToolContext set with
``set_tool_context``.
"""

import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from langchain_core.tools import tool
from pydantic import ValidationError as PydanticValidationError

from xero_agent.core.errors import ErrorCode, create_error_response
from xero_agent.services.period_series import count_periods
from xero_agent.services.reconciler import (
    Reconciler,
    ReconciliationRequest,
    budget_timeframe,
)
from xero_agent.services.report_fetcher import XeroReportFetcher
from xero_agent.services.report_tree import build_report
from xero_agent.services.xero_client import XeroClient, XeroError

logger = logging.getLogger(__name__)


# =============================================================================
# Tool Context
# =============================================================================


class ToolContext:
    """Holds the services agent tools depend on.

    Example:
        ```python
        context = ToolContext(XeroClient.from_settings())
        set_tool_context(context)
        ```
    """

    def __init__(
        self,
        client: XeroClient,
        cumulative_actuals: Optional[bool] = None,
    ):
        """Initialize ToolContext.

        Args:
            client: Authenticated Xero client
            cumulative_actuals: Passed to the Reconciler (see its docs)
        """
        self.client = client
        self.cumulative_actuals = cumulative_actuals

    def get_xero_client(self) -> XeroClient:
        return self.client

    def get_reconciler(self) -> Reconciler:
        """Build a Reconciler bound to this context's client."""
        return Reconciler(
            XeroReportFetcher(self.client),
            cumulative_actuals=self.cumulative_actuals,
        )

    async def close(self) -> None:
        """Close the underlying client."""
        await self.client.close()


# Global tool context - must be set before using tools
_tool_context: Optional[ToolContext] = None


def set_tool_context(context: Optional[ToolContext]) -> None:
    """Set the global tool context.

    Must be called before using any agent tools.

    Args:
        context: ToolContext instance, or None to clear it
    """
    global _tool_context
    _tool_context = context


def get_tool_context() -> ToolContext:
    """Get the global tool context.

    Raises:
        RuntimeError: If tool context has not been set
    """
    if _tool_context is None:
        raise RuntimeError(
            "Tool context not set. Call set_tool_context() before using agent tools."
        )
    return _tool_context


def _error_text(error_code: ErrorCode, message: str, details: Optional[Dict[str, Any]] = None) -> str:
    response = create_error_response(error_code, message=message, details=details)
    return json.dumps({"error": response.model_dump()}, indent=2)


# =============================================================================
# Actual vs Budget Tools
# =============================================================================


async def _run_comparison(arguments: Dict[str, Any]) -> str:
    try:
        request = ReconciliationRequest(**arguments)
    except PydanticValidationError as e:
        logger.warning(f"Invalid comparison arguments: {e}")
        return _error_text(
            ErrorCode.VALIDATION_ERROR,
            "Invalid arguments for actual vs budget comparison.",
            details={"errors": json.loads(e.json())},
        )

    try:
        reconciler = get_tool_context().get_reconciler()
    except RuntimeError as e:
        logger.error(str(e))
        return _error_text(ErrorCode.TOOL_CONTEXT_MISSING, str(e))

    result = await reconciler.reconcile(request)
    if not result.success:
        return json.dumps({"error": result.error_response().model_dump()}, indent=2)
    return json.dumps(result.to_payload(), indent=2)


@tool
async def periodic_actual_vs_budget(
    metric: str,
    from_date: Optional[str] = None,
    to_date: Optional[str] = None,
    periods: Optional[int] = None,
    timeframe: Optional[str] = None,
    standard_layout: Optional[bool] = None,
    payments_only: Optional[bool] = None,
) -> str:
    """Compare actual and budgeted values of a metric for each period.

    The metric (e.g. 'Income', 'Operating Expenses') is matched
    case-insensitively against the section titles of the Xero Profit and
    Loss and Budget Summary reports. Returns JSON: a list of
    {period, actual, budget, variance} objects, or an object keyed by
    section title when several sections match. When no section matches,
    the error lists the available section titles.

    Args:
        metric: Section title to compare, or 'ALL'
        from_date: Start date YYYY-MM-DD (default: first day of current month)
        to_date: End date YYYY-MM-DD (default: last day of current month)
        periods: Number of periods (default: derived from the date range)
        timeframe: MONTH, QUARTER or YEAR (default MONTH)
        standard_layout: Use the standard P&L layout
        payments_only: Only include accounts with payments
    """
    logger.info(f"Comparing actual vs budget for metric '{metric}'")
    arguments = {
        "metric": metric,
        "from_date": from_date,
        "to_date": to_date,
        "periods": periods,
        "timeframe": (timeframe or "MONTH").upper(),
        "standard_layout": standard_layout,
        "payments_only": payments_only,
    }
    return await _run_comparison(arguments)


@tool
async def actual_vs_budget(
    from_date: Optional[str] = None,
    to_date: Optional[str] = None,
    timeframe: Optional[str] = None,
) -> str:
    """Compare actual and budget values for every section of the reports.

    Returns JSON keyed by section title, each holding the per-period
    comparison records.

    Args:
        from_date: Start date YYYY-MM-DD (default: first day of current month)
        to_date: End date YYYY-MM-DD (default: last day of current month)
        timeframe: MONTH or YEAR (default MONTH)
    """
    logger.info("Comparing actual vs budget for all sections")
    arguments = {
        "metric": "ALL",
        "from_date": from_date,
        "to_date": to_date,
        "timeframe": (timeframe or "MONTH").upper(),
        "standard_layout": True,
        "payments_only": False,
    }
    return await _run_comparison(arguments)


# =============================================================================
# Report Tools
# =============================================================================


@tool
async def list_profit_and_loss(
    from_date: str,
    end_date: Optional[str] = None,
    periods: Optional[int] = None,
    timeframe: Optional[str] = None,
    standard_layout: Optional[bool] = None,
    payments_only: Optional[bool] = None,
) -> Dict[str, Any]:
    """Fetch the Profit and Loss report from Xero.

    When end_date is given and periods is not, the number of periods is
    derived from the range. The report is requested per period, without an
    end date.

    Args:
        from_date: Start date YYYY-MM-DD
        end_date: Optional end date YYYY-MM-DD
        periods: Optional number of periods (overrides end_date)
        timeframe: MONTH, QUARTER or YEAR (default MONTH)
        standard_layout: Use the standard layout
        payments_only: Only include accounts with payments
    """
    tf = (timeframe or "MONTH").upper()
    logger.info(f"Fetching P&L from {from_date} ({tf})")
    try:
        if periods is None and end_date:
            periods = count_periods(
                datetime.strptime(from_date, "%Y-%m-%d").date(),
                datetime.strptime(end_date, "%Y-%m-%d").date(),
                tf,
            )
        client = get_tool_context().get_xero_client()
        data = await client.get_profit_and_loss(
            from_date=from_date,
            periods=periods,
            timeframe=tf,
            standard_layout=standard_layout,
            payments_only=payments_only,
        )
        report = build_report(data)
        return {
            "success": True,
            "report_type": "profit_and_loss",
            "from_date": from_date,
            "periods": periods,
            "timeframe": tf,
            "sections": report.section_titles,
            "data": data,
        }
    except ValueError as e:
        return {"success": False, "report_type": "profit_and_loss", "message": f"Invalid argument: {e}"}
    except XeroError as e:
        return {
            "success": False,
            "report_type": "profit_and_loss",
            "message": f"Xero API error: {e}",
            "error": e.to_error_response().model_dump(),
        }
    except Exception as e:
        return {"success": False, "report_type": "profit_and_loss", "message": f"Unexpected error: {e}"}


@tool
async def list_budget_summary(
    date: str,
    periods: Optional[int] = None,
    timeframe: Optional[str] = None,
) -> Dict[str, Any]:
    """Fetch the Budget Summary report from Xero.

    Args:
        date: Start date YYYY-MM-DD
        periods: Number of periods (default 1)
        timeframe: MONTH or YEAR (default MONTH)
    """
    tf = budget_timeframe((timeframe or "MONTH").upper())
    logger.info(f"Fetching budget summary from {date} ({tf})")
    try:
        client = get_tool_context().get_xero_client()
        reports = await client.get_budget_summary(date=date, periods=periods, timeframe=tf)
        return {"success": True, "report_type": "budget_summary", "data": reports}
    except XeroError as e:
        return {
            "success": False,
            "report_type": "budget_summary",
            "message": f"Xero API error: {e}",
            "error": e.to_error_response().model_dump(),
        }
    except Exception as e:
        return {"success": False, "report_type": "budget_summary", "message": f"Unexpected error: {e}"}


@tool
async def list_budgets(
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
) -> Dict[str, Any]:
    """List budgets defined in Xero, optionally limited to a date range."""
    logger.info("Fetching budgets")
    try:
        client = get_tool_context().get_xero_client()
        budgets = await client.get_budgets(date_from=date_from, date_to=date_to)
        return {
            "success": True,
            "budgets": [
                {
                    "budget_id": b.get("BudgetID"),
                    "type": b.get("Type"),
                    "description": b.get("Description"),
                    "status": b.get("Status"),
                }
                for b in budgets
            ],
        }
    except Exception as e:
        return {"success": False, "message": str(e)}


@tool
async def list_aged_receivables(
    contact_id: Optional[str] = None,
    report_date: Optional[str] = None,
    invoices_from_date: Optional[str] = None,
    invoices_to_date: Optional[str] = None,
) -> Dict[str, Any]:
    """List overdue sales invoices up to a report date, grouped by contact.

    Args:
        contact_id: Optional contact to restrict the report to
        report_date: YYYY-MM-DD (default today)
        invoices_from_date: Only invoices issued on or after this date
        invoices_to_date: Only invoices issued on or before this date
    """
    logger.info("Fetching aged receivables")
    try:
        client = get_tool_context().get_xero_client()
        report = await client.get_aged_receivables(
            contact_id, report_date, invoices_from_date, invoices_to_date
        )
        return {"success": True, "report_type": "aged_receivables", "data": report.model_dump()}
    except Exception as e:
        return {"success": False, "report_type": "aged_receivables", "message": str(e)}


@tool
async def list_aged_payables(
    contact_id: Optional[str] = None,
    report_date: Optional[str] = None,
    invoices_from_date: Optional[str] = None,
    invoices_to_date: Optional[str] = None,
) -> Dict[str, Any]:
    """List overdue purchase bills up to a report date, grouped by contact.

    Args:
        contact_id: Optional contact to restrict the report to
        report_date: YYYY-MM-DD (default today)
        invoices_from_date: Only bills issued on or after this date
        invoices_to_date: Only bills issued on or before this date
    """
    logger.info("Fetching aged payables")
    try:
        client = get_tool_context().get_xero_client()
        report = await client.get_aged_payables(
            contact_id, report_date, invoices_from_date, invoices_to_date
        )
        return {"success": True, "report_type": "aged_payables", "data": report.model_dump()}
    except Exception as e:
        return {"success": False, "report_type": "aged_payables", "message": str(e)}


# =============================================================================
# Reference Data Tools
# =============================================================================


def _contact_summary(contact: dict) -> Dict[str, Any]:
    kinds = [
        label for flag, label in (("IsCustomer", "Customer"), ("IsSupplier", "Supplier"))
        if contact.get(flag)
    ]
    return {
        "contact_id": contact.get("ContactID"),
        "name": contact.get("Name") or "Unnamed",
        "email": contact.get("EmailAddress"),
        "type": ", ".join(kinds) or "Unknown",
        "default_currency": contact.get("DefaultCurrency"),
        "status": contact.get("ContactStatus") or "Unknown",
    }


@tool
async def list_accounts(email: Optional[str] = None) -> Dict[str, Any]:
    """List the chart of accounts, or contacts matching an email address.

    Use the account codes and names when referring to accounts. When email
    is given, returns the contacts with that email address instead.
    """
    try:
        client = get_tool_context().get_xero_client()
        if email:
            logger.info(f"Fetching contacts by email {email}")
            contacts = await client.get_contacts_by_email(email)
            if not contacts:
                return {"success": True, "contacts": [], "message": f"No contacts found with email: {email}"}
            return {"success": True, "contacts": [_contact_summary(c) for c in contacts]}

        logger.info("Fetching chart of accounts")
        accounts = await client.get_accounts()
        return {
            "success": True,
            "accounts": [
                {
                    "account_id": a.get("AccountID"),
                    "code": a.get("Code"),
                    "name": a.get("Name") or "Unnamed",
                    "type": a.get("Type"),
                    "status": a.get("Status"),
                    "description": a.get("Description"),
                    "tax_type": a.get("TaxType"),
                }
                for a in accounts
            ],
        }
    except XeroError as e:
        return {
            "success": False,
            "message": f"Xero API error: {e}",
            "error": e.to_error_response().model_dump(),
        }
    except Exception as e:
        return {"success": False, "message": f"Unexpected error: {e}"}


@tool
async def list_contacts(page: Optional[int] = None) -> Dict[str, Any]:
    """List contacts (customers and suppliers), one page of up to 100."""
    logger.info(f"Fetching contacts page {page or 1}")
    try:
        client = get_tool_context().get_xero_client()
        contacts = await client.get_contacts(page=page)
        return {"success": True, "page": page or 1, "contacts": [_contact_summary(c) for c in contacts]}
    except Exception as e:
        return {"success": False, "message": str(e)}


# =============================================================================
# Tool Registry
# =============================================================================


BUSINESS_INSIGHT_TOOLS = [
    periodic_actual_vs_budget,
    actual_vs_budget,
]


REPORT_TOOLS = [
    list_profit_and_loss,
    list_budget_summary,
    list_budgets,
    list_aged_receivables,
    list_aged_payables,
]


REFERENCE_DATA_TOOLS = [
    list_accounts,
    list_contacts,
]


def get_all_tools() -> List:
    """Get all agent tools for registration."""
    return (
        BUSINESS_INSIGHT_TOOLS.copy() +
        REPORT_TOOLS.copy() +
        REFERENCE_DATA_TOOLS.copy()
    )


def get_tool(name: str):
    """Look up a tool by name, or None."""
    for candidate in get_all_tools():
        if candidate.name == name:
            return candidate
    return None
