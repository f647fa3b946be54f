from medqueue.models.profile import Profile
from medqueue.models.role_data import PatientData, StaffData, AdminData

__all__ = ["Profile", "PatientData", "StaffData", "AdminData"]
