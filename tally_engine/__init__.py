"""
Tally Report Engine
Query, reconcile and export TallyPrime accounting data
"""

__version__ = "1.0.0"
