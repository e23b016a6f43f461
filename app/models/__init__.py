from .patient_model import Patient
from .appointment_model import Appointment
from .report_model import ReportVersion
from .billing_model import BillingRecord
