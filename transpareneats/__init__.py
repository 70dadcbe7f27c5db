"""
TranspareEats barcode resolution core.
Resolves product barcodes through a layered cache and an ordered chain of
external food data providers.
"""

__version__ = "1.0.0"
