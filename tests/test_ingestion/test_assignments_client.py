"""
Tests for sorter_monitor.ingestion.assignments_client.

HTTP is served by ``httpx.MockTransport``; no network access.
"""

from __future__ import annotations

import httpx
import pytest

from sorter_monitor.errors import AssignmentFetchError
from sorter_monitor.ingestion.assignments_client import AssignmentsClient

URL = "http://plant.local/api/api/assignments_list"


def _client(handler) -> AssignmentsClient:
    http = httpx.Client(transport=httpx.MockTransport(handler))
    return AssignmentsClient(URL, timeout_s=1.0, http_client=http)


class TestFetchAssignments:
    def test_parses_wire_records_in_order(self):
        payload = [
            {"salida": 3, "sku": "4J-D-SANTINA-C5WFTFG", "sorter_id": 1},
            {"salida": 1, "sku": "Descarte", "sorter_id": 2},
        ]
        client = _client(lambda r: httpx.Response(200, json=payload))
        result = client.fetch_assignments()
        assert [(a.output_line, a.sku, a.sorter_id) for a in result] == [
            (3, "4J-D-SANTINA-C5WFTFG", 1),
            (1, "Descarte", 2),
        ]

    def test_hits_configured_url(self):
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(str(request.url))
            return httpx.Response(200, json=[])

        assert _client(handler).fetch_assignments() == []
        assert seen == [URL]

    def test_non_200_raises(self):
        client = _client(lambda r: httpx.Response(503))
        with pytest.raises(AssignmentFetchError, match="503"):
            client.fetch_assignments()

    def test_malformed_json_raises(self):
        client = _client(lambda r: httpx.Response(200, text="<html>oops</html>"))
        with pytest.raises(AssignmentFetchError, match="Malformed JSON"):
            client.fetch_assignments()

    def test_non_array_raises(self):
        client = _client(lambda r: httpx.Response(200, json={"salida": 1}))
        with pytest.raises(AssignmentFetchError, match="JSON array"):
            client.fetch_assignments()

    def test_invalid_record_raises(self):
        client = _client(lambda r: httpx.Response(200, json=[{"sku": "X"}]))
        with pytest.raises(AssignmentFetchError, match="Invalid assignment"):
            client.fetch_assignments()

    def test_transport_error_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(AssignmentFetchError):
            _client(handler).fetch_assignments()

    def test_trickled_body_raises_at_deadline(self, drip_stream, stepping_clock):
        payload = b'[{"salida": 3, "sku": "4J-D-SANTINA-C5WFTFG", "sorter_id": 1}]'
        body = drip_stream(payload)
        client = _client(lambda r: httpx.Response(200, stream=body))
        with pytest.raises(AssignmentFetchError, match="within 1.0s"):
            client.fetch_assignments()
        assert body.sent < len(payload)
