"""Core HR module: Employee model (hire date, leave credits, status)."""

from hrdesk.core_hr.models import Employee

__all__ = ["Employee"]
