"""
Snapshot construction and change detection.

Modules:
  builder — counts, chart readings and percentage tables -> DataSnapshot
  changes — has_changes / detect_changes between assignment lists
"""
