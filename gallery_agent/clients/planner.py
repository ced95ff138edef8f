# gallery_agent/clients/planner.py
"""
HTTP client for the remote planner.

Wire contract
-------------
POST {base_url}/{endpoint}   (default endpoint: agent/invoke)
  body:     AgentRequest  (camelCase JSON)
  response: AgentResponse (camelCase JSON)

Failures are normalized through `planner_error_guard`:
  - connection errors, timeouts, HTTP >= 400  → PlannerTransportError
  - non-JSON body or schema mismatch          → PlannerResponseError
No retries here; the session controller surfaces the error and returns to Idle.
"""

from __future__ import annotations

import logging
from typing import Protocol

import requests

from gallery_agent.core.errors import PlannerResponseError, PlannerTransportError, planner_error_guard
from gallery_agent.schemas.models import AgentRequest, AgentResponse

_log = logging.getLogger(__name__)

_USER_AGENT = "gallery-agent/0.1"


class Planner(Protocol):
    def invoke(self, request: AgentRequest) -> AgentResponse: ...


class PlannerClient(Planner):
    def __init__(
        self,
        base_url: str,
        *,
        endpoint: str = "agent/invoke",
        timeout_s: float = 60.0,
        session: requests.Session | None = None,
    ) -> None:
        self.url = f"{base_url.rstrip('/')}/{endpoint.lstrip('/')}"
        self.timeout_s = timeout_s
        self.session = session or requests.Session()

    def invoke(self, request: AgentRequest) -> AgentResponse:
        payload = request.to_wire()
        _log.debug("POST %s (tool_result=%s)", self.url, request.tool_result is not None)
        with planner_error_guard():
            resp = self.session.post(
                self.url,
                json=payload,
                headers={"User-Agent": _USER_AGENT, "Accept": "application/json"},
                timeout=self.timeout_s,
            )
            if resp.status_code >= 400:
                raise PlannerTransportError(f"Planner returned HTTP {resp.status_code}: {resp.text[:200]}")
            try:
                body = resp.json()
            except ValueError as e:
                raise PlannerResponseError(f"Planner returned non-JSON body: {e}") from e
            response = AgentResponse.model_validate(body)
        _log.debug("Planner status=%s session=%s", response.status, response.session_id)
        return response

    def close(self) -> None:
        self.session.close()


__all__ = ["Planner", "PlannerClient"]
