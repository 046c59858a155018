"""
File persistence under the configured data folder.

Modules:
  store           — JSON files: dataset, daily mirror, current snapshot,
                    last assignments, change log
  training_export — Semicolon-delimited training_data.csv
"""
