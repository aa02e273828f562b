"""gridcalc -- spreadsheet formula engine.

Parses formula text, evaluates it against a cell lookup, tracks the
dependency graph between cells and rewrites references for fill/copy.
"""

__version__ = "0.3.0"
