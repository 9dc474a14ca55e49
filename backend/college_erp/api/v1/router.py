from fastapi import APIRouter
from college_erp.api.v1.endpoints import admissions, audit_logs, curriculum, health, semesters, student_subjects, students

api_router = APIRouter()

api_router.include_router(health.router)


@api_router.get("/health", tags=["Health"])
async def health_check():
    """Simple health check endpoint for load balancers"""
    return {"status": "healthy", "service": "college-erp-backend"}


api_router.include_router(admissions.router)
api_router.include_router(students.router)
api_router.include_router(semesters.router)
api_router.include_router(student_subjects.router)
api_router.include_router(curriculum.router)
api_router.include_router(audit_logs.router)
