"""Core module - configuration, canonical records and observability.

Everything here is independent of how records are fetched: the factory
backend connector lives in /connectors/, payment logic in /reconciliation/.
"""

__version__ = "1.0.0"
