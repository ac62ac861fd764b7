"""
Household calendar core.

Recurring event materialization and reminder scheduling for the household
manager (plants, projects, tasks and the shared calendar).
"""

__version__ = "0.1.0"
