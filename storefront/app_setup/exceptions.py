"""
Gestionnaires d'exceptions.
- StoreError (et sous-classes): JSON {"detail", "code"} avec le code HTTP de l'erreur.
- RequestValidationError: 400 validation_error (au lieu du 422 FastAPI) avec la liste des champs.
- HTTPException: JSON standard FastAPI.
"""
import logging
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

import storefront.config as config
from storefront.errors import StoreError

logger = logging.getLogger(__name__)

def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError):
        if exc.status_code >= 500:
            logger.error("%s %s -> %s %s: %s", request.method, request.url.path, exc.status_code, exc.code, exc.message)
        else:
            logger.info("%s %s -> %s %s", request.method, request.url.path, exc.status_code, exc.code)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict(config.EXPOSE_ERROR_DETAILS))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = [
            {"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")}
            for e in exc.errors()
        ]
        return JSONResponse(
            status_code=400,
            content={"detail": "Requête invalide", "code": "validation_error", "errors": jsonable_encoder(errors)},
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=exc.headers)
