from fastapi import APIRouter
from .patients.patient_routes import router as patient_router
from .appointments.appointment_routes import router as appointment_router
from .reports.report_routes import router as report_router
from .billing.billing_routes import router as billing_router
from .workflow.workflow_routes import router as workflow_router

router = APIRouter()


router.include_router(patient_router)
router.include_router(appointment_router)
router.include_router(report_router)
router.include_router(billing_router)
router.include_router(workflow_router)
