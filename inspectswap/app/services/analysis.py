"""
Report Analysis Provider.

Produces the negotiation "battlecard" for an uploaded inspection report by
calling an OpenAI-compatible chat-completions endpoint. The marketplace treats
the result as opaque display data: any provider failure degrades to a fixed
fallback battlecard and never blocks the upload or its credit reward.
"""

import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from inspectswap.app.core.config import settings
from inspectswap.app.core.reliability import CircuitBreaker, CircuitOpenError, analysis_circuit_breaker

logger = logging.getLogger("inspectswap.analysis")

SYSTEM_PROMPT = """You are an expert real estate negotiation coach and home inspection analyst. Generate comprehensive negotiation ammunition for a property buyer based on an inspection report. Return a JSON object with:

- majorDefects: array of 2-5 major issues found (simple strings for quick reference)
- summaryFindings: a brief paragraph summarizing the overall condition
- negotiationPoints: array of 3-5 high-level talking points
- estimatedCredit: total dollar amount to request from seller (sum of all issues)
- defectBreakdown: array of detailed analysis for each issue with:
  - issue: short description of the problem
  - severity: "critical", "major", or "moderate"
  - estimatedRepairCost: realistic repair cost estimate in dollars
  - creditRecommendation: amount to request (usually 70-90% of repair cost)
  - repairVsCredit: "request_credit", "request_repair", or "either"
  - sellerScript: a 1-2 sentence script to use with the seller or their agent
- openingStatement: a confident opening statement to begin the negotiation
- closingStatement: a closing statement that summarizes the total ask

Be specific, realistic, and persuasive. Use actual contractor price ranges."""


def fallback_analysis() -> Dict[str, Any]:
    """Deterministic battlecard used whenever the provider is unavailable."""
    return {
        "majorDefects": ["Roof needs inspection", "Plumbing requires evaluation"],
        "summaryFindings": "Property requires professional assessment of key systems.",
        "negotiationPoints": ["Request inspection contingency", "Negotiate repair credits"],
        "estimatedCredit": 3000,
        "defectBreakdown": [
            {
                "issue": "Roof needs inspection",
                "severity": "major",
                "estimatedRepairCost": 2500,
                "creditRecommendation": 2000,
                "repairVsCredit": "request_credit",
                "sellerScript": "The roof shows signs of wear and requires professional assessment. We're requesting a credit to address this.",
            },
            {
                "issue": "Plumbing requires evaluation",
                "severity": "moderate",
                "estimatedRepairCost": 1200,
                "creditRecommendation": 1000,
                "repairVsCredit": "either",
                "sellerScript": "The plumbing system needs evaluation. A credit toward potential repairs would be appropriate.",
            },
        ],
        "openingStatement": "Based on the inspection findings, we've identified items requiring attention.",
        "closingStatement": "We believe these credits are fair given the issues found.",
    }


def _default_breakdown(defects: List[str]) -> List[Dict[str, Any]]:
    return [
        {
            "issue": defect,
            "severity": "critical" if i == 0 else "major",
            "estimatedRepairCost": 2000 + i * 500,
            "creditRecommendation": 1500 + i * 400,
            "repairVsCredit": "request_credit",
            "sellerScript": (
                f"The inspection revealed {str(defect).lower()}. This is a significant concern "
                "that warrants a credit toward closing costs."
            ),
        }
        for i, defect in enumerate(defects)
    ]


def _as_int(value: Any) -> Optional[int]:
    try:
        number = int(round(float(value)))
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def normalize_analysis(parsed: Dict[str, Any]) -> Dict[str, Any]:
    """Fill fields the model omitted with sensible defaults."""
    defects = parsed.get("majorDefects") or ["Roof showing signs of wear", "HVAC system over 15 years old"]
    return {
        "majorDefects": defects,
        "summaryFindings": parsed.get("summaryFindings")
        or "Property is in fair condition with some maintenance items to address.",
        "negotiationPoints": parsed.get("negotiationPoints")
        or ["Request seller credit for roof repairs", "Negotiate HVAC replacement allowance"],
        "estimatedCredit": _as_int(parsed.get("estimatedCredit")) or 5000,
        "defectBreakdown": parsed.get("defectBreakdown") or _default_breakdown(defects),
        "openingStatement": parsed.get("openingStatement")
        or "Based on the professional inspection, we've identified several items that need to be addressed before closing.",
        "closingStatement": parsed.get("closingStatement")
        or "We believe a credit is fair given the scope of work required. This allows everyone to move forward on good terms.",
    }


class AnalysisProvider:
    """Interface: turn an uploaded document into a battlecard dict."""

    async def analyze(self, file_name: str, content: bytes) -> Dict[str, Any]:
        raise NotImplementedError


class FallbackAnalysisProvider(AnalysisProvider):
    """Used when no provider credentials are configured."""

    async def analyze(self, file_name: str, content: bytes) -> Dict[str, Any]:
        return fallback_analysis()


class ChatCompletionAnalysisProvider(AnalysisProvider):
    """
    Analysis via an OpenAI-compatible /chat/completions endpoint.

    Calls pass through a circuit breaker; while it is open the fallback
    battlecard is returned without touching the network.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
        model: str = "gpt-4o",
        timeout: float = 60.0,
        max_tokens: int = 2048,
        breaker: CircuitBreaker = analysis_circuit_breaker,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.model = model
        self.timeout = timeout
        self.max_tokens = max_tokens
        self.breaker = breaker
        self.transport = transport

    async def analyze(self, file_name: str, content: bytes) -> Dict[str, Any]:
        try:
            parsed = await self.breaker.call(self._request, file_name)
        except CircuitOpenError:
            logger.warning("Analysis circuit open; using fallback for %s", file_name)
            return fallback_analysis()
        except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as exc:
            logger.warning("Analysis failed for %s: %s: %s", file_name, type(exc).__name__, exc)
            return fallback_analysis()

        return normalize_analysis(parsed)

    async def _request(self, file_name: str) -> Dict[str, Any]:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": (
                        f"Analyze this inspection report: {file_name}. Generate comprehensive negotiation "
                        "ammunition with per-issue cost breakdowns and seller scripts."
                    ),
                },
            ],
            "response_format": {"type": "json_object"},
            "max_completion_tokens": self.max_tokens,
        }

        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self.transport,
        ) as client:
            response = await client.post(
                "/chat/completions",
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
            response.raise_for_status()
            body = response.json()

        if not isinstance(body, dict):
            raise ValueError("Analysis response is not a JSON object")
        message = body["choices"][0]["message"]
        if not isinstance(message, dict):
            raise ValueError("Analysis response has no message object")
        content = message.get("content") or "{}"
        if not isinstance(content, str):
            raise ValueError("Analysis message content is not text")
        parsed = json.loads(content)
        if not isinstance(parsed, dict):
            raise ValueError("Analysis response is not a JSON object")
        return parsed


def get_analysis_provider() -> AnalysisProvider:
    """
    FastAPI dependency returning the configured analysis provider.

    Without an API key every upload receives the fallback battlecard.
    """
    if not settings.analysis_api_key:
        return FallbackAnalysisProvider()

    return ChatCompletionAnalysisProvider(
        api_key=settings.analysis_api_key,
        base_url=settings.analysis_base_url,
        model=settings.analysis_model,
        timeout=settings.analysis_timeout_seconds,
        max_tokens=settings.analysis_max_tokens,
    )
