import uuid
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from seller_hub.config import settings
from seller_hub.database import SessionLocal, engine
from seller_hub.models_sqlalchemy import Base
from seller_hub.models_sqlalchemy import models  # noqa: F401  (registers tables)
from seller_hub.routers import dashboard, session
from seller_hub.services.session_service import session_service
from seller_hub.utils.logger import configure_logging, logger

configure_logging(settings.DEBUG)

app = FastAPI(title="Seller Hub Dashboard API", version="1.0.0")

origins = [o.strip() for o in settings.ALLOWED_ORIGINS.split(",") if o.strip()]
if settings.FRONTEND_URL and settings.FRONTEND_URL not in origins:
    origins.append(settings.FRONTEND_URL)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
    max_age=3600,
)


# Request logging middleware with request ID
@app.middleware("http")
async def request_logger(request: Request, call_next):
    rid = uuid.uuid4().hex[:8]
    request.state.rid = rid
    logger.info("→ %s %s rid=%s", request.method, request.url.path, rid)
    try:
        resp = await call_next(request)
        logger.info("← %s status=%s rid=%s", request.url.path, resp.status_code, rid)
        resp.headers["X-Request-ID"] = rid
        return resp
    except Exception as e:
        logger.exception("Unhandled error rid=%s: %s", rid, str(e))
        error_resp = JSONResponse(
            {"error": "internal_error", "rid": rid, "message": str(e), "type": type(e).__name__},
            status_code=500,
        )
        error_resp.headers["X-Request-ID"] = rid
        return error_resp


app.include_router(session.router, prefix="/api")
app.include_router(dashboard.router, prefix="/api")


@app.on_event("startup")
async def startup_event():
    logger.info("Seller Hub dashboard API starting up...")
    logger.info(f"Seller API: {settings.seller_api_base_url}")

    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        purged = session_service.purge_expired(db)
        logger.info(f"Startup session cleanup removed {purged} session(s)")
    finally:
        db.close()


@app.get("/healthz")
async def healthz():
    return {"status": "ok"}
