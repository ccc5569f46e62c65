from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from core.config import settings
from core.exceptions import ServiceError
from core.logger import logger
from api.routers import auth, branches, semesters, courses, enrollments, practice, exams

# API Documentation
API_DESCRIPTION = """
## Learning Platform API

REST API behind the learning platform: academic catalog, enrollments,
AI-generated timed practice sessions and scheduled exams.

### Authentication

All endpoints except signup and login require a bearer token:

- Header: `Authorization: Bearer <token>`
- Tokens are returned by `POST /api/auth/login` and expire after 24 hours.

### Errors

Every error body has the form `{"detail": "..."}`.

### Rate Limits

- Practice generation is limited per user (a few requests per minute).
"""

TAGS_METADATA = [
    {"name": "auth", "description": "Signup, login and token validation."},
    {"name": "branches", "description": "Academic branches (admin managed)."},
    {"name": "semesters", "description": "Semesters within a branch (admin managed)."},
    {"name": "courses", "description": "Course catalog and visibility rules."},
    {"name": "enrollments", "description": "Enrolling in and leaving courses."},
    {"name": "practice", "description": "AI-generated timed practice sessions."},
    {"name": "exams", "description": "Scheduled exams, attempts and grading."},
]

app = FastAPI(
    title="Learning Platform API",
    description=API_DESCRIPTION,
    version="1.0.0",
    openapi_tags=TAGS_METADATA,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    logger.info("Request rejected", path=request.url.path, status=exc.status_code, reason=exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


app.include_router(auth.router)
app.include_router(branches.router)
app.include_router(semesters.router)
app.include_router(courses.router)
app.include_router(enrollments.router)
app.include_router(practice.router)
app.include_router(exams.router)


@app.get("/", tags=["info"], summary="Health check")
def read_root():
    return {"message": "API is running"}


@app.get("/favicon.ico", include_in_schema=False)
async def favicon():
    return Response(status_code=204)
