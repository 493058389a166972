"""
Analytics Dashboard Service

Dashboards, metrics and scheduled reports over aggregated time-series data.
"""

__version__ = "1.0.0"
