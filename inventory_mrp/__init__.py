"""
Inventory Ledger & Multi-Level MRP Engine
"""

__version__ = "1.4.0"
