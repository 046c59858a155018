"""
sorter_monitor — polls a fruit-packing plant's sorter assignment API,
records snapshots and change history, exports chart percentages for
training, and advises when the two sorters drift out of balance.
"""

__version__ = "0.1.0"
