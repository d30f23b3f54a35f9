"""
LabDesk - clinical laboratory operations console
"""

__version__ = "1.0.0"
