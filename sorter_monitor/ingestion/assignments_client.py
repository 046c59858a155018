"""
Assignment API client.

Endpoint::

    GET {base_url}/api/api/assignments_list
    → [{"salida": 3, "sku": "4J-D-SANTINA-C5WFTFG", "sorter_id": 1}, ...]

Any of the following aborts the fetch for the current cycle with
``AssignmentFetchError`` (the coordinator logs it and waits for the next
cycle):

  - transport error, or no complete response within the timeout
  - non-200 status
  - body that is not JSON, or not a JSON array
  - an element that does not validate as an ``Assignment``
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx
from pydantic import TypeAdapter, ValidationError

from sorter_monitor.errors import AssignmentFetchError
from sorter_monitor.models.assignment import Assignment
from sorter_monitor.utils.http import request_with_deadline

logger = logging.getLogger(__name__)

_ASSIGNMENT_LIST = TypeAdapter(list[Assignment])


class AssignmentsClient:
    """Fetches the current assignment list from the plant API.

    Usage::

        client = AssignmentsClient(config.packing.assignments_url, timeout_s=10.0)
        assignments = client.fetch_assignments()

    Args:
        assignments_url: Full URL of the ``assignments_list`` endpoint.
        timeout_s: Whole-request deadline in seconds.
        http_client: Optional pre-built ``httpx.Client`` (tests inject one
            with a ``MockTransport``).
    """

    def __init__(
        self,
        assignments_url: str,
        timeout_s: float = 10.0,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self.assignments_url = assignments_url
        self.timeout_s = timeout_s
        self._client = http_client or httpx.Client(timeout=timeout_s)

    def fetch_assignments(self) -> list[Assignment]:
        """Return the current assignments in API order.

        Raises:
            AssignmentFetchError: On any transport, status or parse failure.
        """
        try:
            resp = request_with_deadline(
                self._client, "GET", self.assignments_url, self.timeout_s
            )
        except httpx.HTTPError as exc:
            raise AssignmentFetchError(f"GET {self.assignments_url} failed: {exc}") from exc

        if resp.status_code != 200:
            raise AssignmentFetchError(
                f"GET {self.assignments_url} returned status {resp.status_code}"
            )

        try:
            payload = resp.json()
        except ValueError as exc:
            raise AssignmentFetchError(f"Malformed JSON from assignment API: {exc}") from exc

        if not isinstance(payload, list):
            raise AssignmentFetchError(
                f"Expected a JSON array, got {type(payload).__name__}"
            )

        try:
            assignments = _ASSIGNMENT_LIST.validate_python(payload)
        except ValidationError as exc:
            raise AssignmentFetchError(
                f"Invalid assignment record: {exc.error_count()} error(s)"
            ) from exc

        logger.debug("Fetched %d assignments from %s", len(assignments), self.assignments_url)
        return assignments

    def close(self) -> None:
        self._client.close()
