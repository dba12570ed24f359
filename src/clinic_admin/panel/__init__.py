"""Panel pages: dashboard, staff management and patient records."""

from .patients import Patient, PatientDetails, PatientQueries
from .router import configure_panel_router

__all__ = ["Patient", "PatientDetails", "PatientQueries", "configure_panel_router"]
