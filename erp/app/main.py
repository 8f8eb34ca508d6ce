from fastapi import FastAPI

from erp.app.api.errors import register_exception_handlers
from erp.app.api.v1.router import router as v1_router
from erp.app.config import settings
from erp.app.logging_config import configure_logging

configure_logging(settings.log_level)

app = FastAPI(title="ERP Core", version="0.1.0")
register_exception_handlers(app)
app.include_router(v1_router, prefix="/v1")
