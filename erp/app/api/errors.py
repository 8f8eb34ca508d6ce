import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from erp.errors import ERPError

logger = logging.getLogger(__name__)


async def erp_error_handler(request: Request, exc: ERPError) -> JSONResponse:
    logger.info(
        "Request rejected",
        extra={"ctx": {"path": request.url.path, "code": exc.code, "status": exc.status_code}},
    )
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ERPError, erp_error_handler)
