# Campus grievance triage service
# FastAPI + MongoDB (or in-memory) + optional OpenAI classification

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Optional

import uvicorn
from fastapi import Depends, FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import OAuth2PasswordBearer
from pymongo import MongoClient
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from . import config
from .auth import (InMemoryAdminDirectory, MongoAdminDirectory, TokenBlacklist, authenticate,
                   create_access_token, decode_access_token)
from .classifier import build_classifier
from .models import (AdminLogin, AdminResponse, Category, DeleteResponse, GrievanceCreate,
                     GrievanceDetailResponse, GrievanceListResponse, GrievanceStatus,
                     StatsResponse, StatusUpdateRequest, StatusUpdateResponse, SubmitResponse,
                     TokenResponse, Urgency)
from .notifier import build_notifier
from .stats import compute_stats
from .store import GrievanceFilter, InMemoryGrievanceStore, MongoGrievanceStore, StoreError
from .workflow import InvalidTransition, update_status

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)

# ---------------------------------------------------------------------------
# App & Globals
# ---------------------------------------------------------------------------
app = FastAPI(title="Campus Grievance Triage")
limiter = Limiter(key_func=get_remote_address)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response


app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

db_client = None
store = None
admins = None
classifier = None
notifier = None
token_blacklist = TokenBlacklist()
executor = ThreadPoolExecutor(max_workers=10)

# ---------------------------------------------------------------------------
# Error handlers
# ---------------------------------------------------------------------------
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors, missing = [], []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
        field = ".".join(loc) or "body"
        errors.append({"field": field, "message": err.get("msg", "Invalid value")})
        if err.get("type") == "missing":
            missing.append(field)
    if missing and len(missing) == len(errors):
        detail = f"Missing required fields: {', '.join(missing)}"
    else:
        detail = "Invalid request: " + "; ".join(f"{e['field']}: {e['message']}" for e in errors)
    return JSONResponse(status_code=400, content={"detail": detail, "errors": errors})


@app.exception_handler(StoreError)
async def store_exception_handler(request: Request, exc: StoreError):
    logger.error("Storage fault on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})

# ---------------------------------------------------------------------------
# Startup / Shutdown
# ---------------------------------------------------------------------------
@asynccontextmanager
async def lifespan(app: FastAPI):
    global db_client, store, admins, classifier, notifier
    if config.STORAGE_BACKEND == "mongo":
        db_client = MongoClient(config.MONGODB_URL, tz_aware=True)
        db = db_client[config.MONGODB_DB]
        store = MongoGrievanceStore(db.grievances, executor)
        await store.ensure_indexes()
        admins = MongoAdminDirectory(db.admins, executor)
        logger.info("Using MongoDB store %s/%s", config.MONGODB_URL, config.MONGODB_DB)
    else:
        store = InMemoryGrievanceStore()
        admins = InMemoryAdminDirectory.from_passwords(config.ADMIN_ACCOUNTS)
        logger.info("Using in-memory store (%d admin accounts)", len(config.ADMIN_ACCOUNTS))
    classifier = build_classifier(config.OPENAI_API_KEY, config.OPENAI_MODEL,
                                  config.CLASSIFIER_TIMEOUT_SECONDS)
    notifier = build_notifier(config.SMTP_HOST, config.SMTP_PORT, config.SMTP_USER,
                              config.SMTP_PASSWORD, config.EMAIL_FROM, config.EMAIL_FROM_NAME,
                              config.SMTP_USE_TLS, config.NOTIFY_TIMEOUT_SECONDS)
    yield
    if db_client:
        db_client.close()

app.router.lifespan_context = lifespan

# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------
async def get_store():
    return store

async def get_admins():
    return admins

async def get_classifier():
    return classifier

async def get_notifier():
    return notifier

async def get_current_admin(token: Optional[str] = Depends(oauth2_scheme),
                            admins=Depends(get_admins)) -> str:
    if token is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    if token in token_blacklist:
        raise HTTPException(status_code=401, detail="Token has been revoked")
    email = decode_access_token(token)
    if email is None:
        raise HTTPException(status_code=401, detail="Invalid token")
    if await admins.get_password_hash(email) is None:
        raise HTTPException(status_code=401, detail="Admin not found")
    return email

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def parse_date_param(value: Optional[str], name: str, end_of_day: bool = False) -> Optional[datetime]:
    """ISO 8601 date or datetime; naive values are UTC. A bare date as an upper bound covers the whole day."""
    if value is None or not value.strip():
        return None
    value = value.strip()
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {name}: expected an ISO 8601 date")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    if end_of_day and len(value) == 10:
        parsed = parsed + timedelta(days=1) - timedelta(microseconds=1)
    return parsed

# ---------------------------------------------------------------------------
# AUTH ENDPOINTS
# ---------------------------------------------------------------------------
@app.post("/auth/login", response_model=TokenResponse)
@limiter.limit("5/minute")
async def login(request: Request, form: AdminLogin, admins=Depends(get_admins)):
    email = form.email.strip().lower()
    if not await authenticate(admins, email, form.password):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    logger.info("Admin %s logged in", email)
    return TokenResponse(access_token=create_access_token(email), email=email)

@app.get("/auth/me", response_model=AdminResponse)
async def get_me(admin: str = Depends(get_current_admin)):
    return AdminResponse(email=admin)

@app.post("/auth/logout")
async def logout(token: Optional[str] = Depends(oauth2_scheme)):
    if token:
        token_blacklist.revoke(token)
    return {"detail": "Logged out successfully"}

# ---------------------------------------------------------------------------
# GRIEVANCE ENDPOINTS
# ---------------------------------------------------------------------------
@app.post("/grievances", response_model=SubmitResponse, status_code=201)
@limiter.limit("10/minute")
async def submit_grievance(request: Request, data: GrievanceCreate,
                           store=Depends(get_store), classifier=Depends(get_classifier)):
    analysis = await classifier.classify(data.complaint)
    g = await store.insert(data, analysis)
    logger.info("Grievance %s submitted: %s/%s/%s", g.id, analysis.category.value,
                analysis.urgency.value, analysis.sentiment.value)
    return SubmitResponse(grievance_id=g.id, analysis=analysis)

@app.get("/grievances", response_model=GrievanceListResponse)
async def list_grievances(
    category: Optional[Category] = None, urgency: Optional[Urgency] = None,
    status: Optional[GrievanceStatus] = None,
    startDate: Optional[str] = None, endDate: Optional[str] = None,
    admin: str = Depends(get_current_admin), store=Depends(get_store)):
    flt = GrievanceFilter(category=category, urgency=urgency, status=status,
                          start=parse_date_param(startDate, "startDate"),
                          end=parse_date_param(endDate, "endDate", end_of_day=True))
    grievances = await store.list(flt)
    return GrievanceListResponse(count=len(grievances), grievances=grievances)

# Literal paths (/stats, /search) are registered before /grievances/{grievance_id}
@app.get("/grievances/stats", response_model=StatsResponse)
async def grievance_stats(admin: str = Depends(get_current_admin), store=Depends(get_store)):
    return compute_stats(await store.list())

@app.get("/grievances/search/{grievance_id}", response_model=GrievanceDetailResponse)
@limiter.limit("20/minute")
async def search_grievance(request: Request, grievance_id: str, store=Depends(get_store)):
    grievance_id = grievance_id.strip()
    if not grievance_id:
        raise HTTPException(status_code=400, detail="Grievance ID is required")
    g = await store.get(grievance_id)
    if g is None:
        raise HTTPException(status_code=404, detail=f'Grievance with ID "{grievance_id}" not found')
    return GrievanceDetailResponse(grievance=g)

@app.get("/grievances/{grievance_id}", response_model=GrievanceDetailResponse)
async def get_grievance(grievance_id: str, admin: str = Depends(get_current_admin),
                        store=Depends(get_store)):
    g = await store.get(grievance_id)
    if g is None:
        raise HTTPException(status_code=404, detail="Grievance not found")
    return GrievanceDetailResponse(grievance=g)

@app.patch("/grievances/{grievance_id}/status", response_model=StatusUpdateResponse)
async def patch_status(grievance_id: str, req: StatusUpdateRequest,
                       admin: str = Depends(get_current_admin), store=Depends(get_store),
                       notifier=Depends(get_notifier)):
    grievance_id = grievance_id.strip()
    if not grievance_id:
        raise HTTPException(status_code=400, detail="Grievance ID is required")
    if req.status not in (GrievanceStatus.VIEWED.value, GrievanceStatus.CLEARED.value):
        raise HTTPException(status_code=400, detail="Status must be either 'viewed' or 'cleared'")
    target = GrievanceStatus(req.status)
    try:
        result = await update_status(store, notifier, grievance_id, target, req.message,
                                     notify_timeout=config.NOTIFY_TIMEOUT_SECONDS)
    except InvalidTransition as e:
        raise HTTPException(status_code=409, detail=str(e))
    if result is None:
        raise HTTPException(status_code=404, detail="Grievance not found")
    logger.info("Admin %s marked grievance %s as %s", admin, grievance_id, target.value)
    note = ("Email notification sent." if result.notification_sent
            else "Email notification could not be sent.")
    return StatusUpdateResponse(grievance=result.grievance,
                                email_notification_sent=result.notification_sent,
                                message=f"Grievance marked as {target.value}. {note}")

@app.delete("/grievances/{grievance_id}", response_model=DeleteResponse)
async def delete_grievance(grievance_id: str, admin: str = Depends(get_current_admin),
                           store=Depends(get_store)):
    if not await store.delete(grievance_id):
        raise HTTPException(status_code=404, detail="Grievance not found")
    logger.info("Admin %s deleted grievance %s", admin, grievance_id)
    return DeleteResponse(message="Grievance deleted successfully", deleted_grievance_id=grievance_id)

# ---------------------------------------------------------------------------
# HEALTH
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return {"status": "healthy", "system": "Campus Grievance Triage",
            "timestamp": datetime.now(timezone.utc)}


def main():
    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")))


if __name__ == "__main__":
    main()
