"""
MonthWise - Core Package

The local persistence and consistency layer of a local-first personal
finance tracker. Profiles record yearly allowance sources and monthly
expenses; everything lives in one on-device SQLite file.

DESIGN PRINCIPLES:
1. Money is integer cents, end to end
2. Nothing is physically deleted unless a cascade or a restore requires it
3. Migrations only move forward and inspect before they mutate
4. Errors are typed and always reach the caller
"""

__version__ = "1.0.0"
__author__ = "MonthWise Team"
