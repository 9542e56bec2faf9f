
# taskhub/main.py

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import os
import logging

# Импортируем роутеры
from taskhub.api.admin import router as admin_router
from taskhub.api.ai import router as ai_router
from taskhub.api.auth import router as auth_router
from taskhub.api.task import router as task_router
from taskhub.api.user import router as user_router

from taskhub.core.settings import settings
from taskhub.core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from taskhub.database import engine
from taskhub.models.base import Base
import taskhub.models  # noqa: F401  (регистрирует все таблицы в Base.metadata)

# Логирование
logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger("TaskHub")

app = FastAPI(
    title="TaskHub API",
    version="1.0.0",
    description="Personal task management backend: tasks, dashboard, export, AI suggestions",
)

# Middlewares
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Роутеры
app.include_router(auth_router)
app.include_router(task_router)
app.include_router(user_router)
app.include_router(admin_router)
app.include_router(ai_router)

# Health check & root
@app.get("/", tags=["Health"])
def root():
    return {"status": "TaskHub API is running!"}

@app.get("/health", tags=["Health"])
def health():
    return {"ok": True}

@app.on_event("startup")
async def startup_event():
    if settings.AUTO_CREATE_TABLES:
        Base.metadata.create_all(bind=engine)
    logger.info(f"Starting TaskHub API ({settings.ENV})")

@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Stopping TaskHub API")

# Exception handlers: доменные ошибки -> HTTP

@app.exception_handler(ValidationError)
async def validation_exception_handler(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=400,
        content={"detail": exc.message, "errors": exc.errors},
    )

@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")),
            "message": err.get("msg", "Invalid value"),
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=400,
        content={"detail": "; ".join(f"{e['field']}: {e['message']}" for e in errors), "errors": errors},
    )

@app.exception_handler(NotFoundError)
async def not_found_exception_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": exc.message})

@app.exception_handler(AuthorizationError)
async def authorization_exception_handler(request: Request, exc: AuthorizationError):
    return JSONResponse(status_code=403, content={"detail": exc.message})

@app.exception_handler(AuthenticationError)
async def authentication_exception_handler(request: Request, exc: AuthenticationError):
    return JSONResponse(
        status_code=401,
        content={"detail": exc.message},
        headers={"WWW-Authenticate": "Bearer"},
    )

@app.exception_handler(UpstreamError)
async def upstream_exception_handler(request: Request, exc: UpstreamError):
    logger.error(f"Upstream failure on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=502, content={"detail": exc.message})

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "taskhub.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", 8000)),
        reload=settings.DEBUG
    )
