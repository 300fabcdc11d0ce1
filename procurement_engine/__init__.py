"""
Material requirements and procurement resolution engine.

Computes assembly buildability from BOMs and current stock, classifies
shortages, and raises purchase requisitions idempotently.
"""

__version__ = "0.1.0"
