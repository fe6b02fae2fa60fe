"""Enrollment domain exports."""
from .entity import Enrollment, EnrollmentAction
from .repository import EnrollmentRepository
from .service import EnrollmentReconciler

__all__ = ["Enrollment", "EnrollmentAction", "EnrollmentRepository", "EnrollmentReconciler"]
