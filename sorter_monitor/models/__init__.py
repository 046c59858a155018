"""
Domain models — pydantic v2 types shared across the monitor.

Modules:
  assignment — Assignment (wire alias ``salida``), ChangeSet, ChangeLogEntry
  chart      — ChartReading plus the calibre rollup table
  snapshot   — DataSnapshot, SkuShare, SnapshotHistory
  advice     — AdvisorState, Imbalance, Advice
"""
