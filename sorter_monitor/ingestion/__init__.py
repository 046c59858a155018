"""
Ingestion layer — everything that talks to the plant's web server.

Submodules:
  assignments_client — GET /api/api/assignments_list -> list[Assignment]
  chart_reader       — Sorter chart pages -> ChartReading (rendered by Playwright
                       or fetched with httpx, parsed with bs4)
"""
