# backend/factory_pulse/main.py
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .database import engine
from . import models
from .api import approvals, customers, documents, intake, projects, rfqs, suppliers, users
from .config import settings
from .errors import register_error_handlers
from .utils.logging import api_logger

# Create all tables on startup
models.Base.metadata.create_all(bind=engine)

app = FastAPI(title="Factory Pulse API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Type", "Content-Length", "Content-Disposition"],
)

register_error_handlers(app)

# Include routers
app.include_router(users.router)
app.include_router(customers.router)
app.include_router(projects.router)
app.include_router(intake.router)
app.include_router(documents.router)
app.include_router(suppliers.router)
app.include_router(rfqs.router)
app.include_router(approvals.router)

api_logger.info("Factory Pulse API initialised", extra={"storage_path": str(settings.STORAGE_PATH)})


@app.get("/")
async def root():
    return {"message": "Factory Pulse API is running"}
