"""
services/__init__.py
─────────────────────
Expone los servicios de negocio del proyecto.
"""

from .auth_service import AuthService
from .budget_service import BudgetService
from .family_service import FamilyService
from .gamification_service import GamificationService
from .planning_service import PlanningService
from .report_service import ReportService
from .transaction_service import TransactionService

__all__ = [
    "AuthService",
    "BudgetService",
    "FamilyService",
    "GamificationService",
    "PlanningService",
    "ReportService",
    "TransactionService",
]
