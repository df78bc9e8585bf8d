from fastapi import FastAPI

from pos_backend.app.api.errors import register_exception_handlers
from pos_backend.app.api.v1.router import router as v1_router
from pos_backend.app.core.logging_config import configure_logging

configure_logging()

app = FastAPI(title="POS BACKEND", version="0.1.0")
register_exception_handlers(app)
app.include_router(v1_router, prefix="/v1")
