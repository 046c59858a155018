"""
sorter_monitor.reporting — plain-text console formatters for the CLI.
"""
