"""
API Routes Package
"""
from . import executions, health, payroll, reviews

__all__ = ["executions", "health", "payroll", "reviews"]
