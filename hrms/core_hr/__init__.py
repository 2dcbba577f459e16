"""Core HR module — Employee, Department, Position, WorkLocation models, schemas and services."""

from hrms.core_hr.models import Department, Employee, Position, WorkLocation

__all__ = ["Employee", "Department", "Position", "WorkLocation"]
