import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from handcart.core.config import settings
from handcart.core.errors import HandcartError
from handcart.core.logging import configure_logging
from handcart.api.v1.api import api_router

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.APP_NAME)

# CORS: use CORS_ORIGINS from env in production; default to localhost for dev
_default_origins = [
    "http://127.0.0.1:4000", "http://localhost:4000",
    "http://127.0.0.1:8080", "http://localhost:8080",
]
_origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()] if settings.CORS_ORIGINS else _default_origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(HandcartError)
async def handcart_error_handler(request: Request, exc: HandcartError):
    level = logging.ERROR if exc.http_status >= 500 else logging.INFO
    logger.log(level, "request_failed", extra={"path": request.url.path, "status_code": exc.http_status,
                                               "reason": exc.code, "error": str(exc)})
    return JSONResponse(status_code=exc.http_status, content=exc.envelope())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    fields = [".".join(str(p) for p in e.get("loc", ()) if p != "body") for e in exc.errors()]
    return JSONResponse(status_code=400, content={"code": "MISSING_PARAM", "msg": f"invalid request: {', '.join(fields)}",
                                                  "fields": fields})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"code": f"HTTP_{exc.status_code}", "msg": str(exc.detail)},
                        headers=getattr(exc, "headers", None))


app.include_router(api_router)


@app.get("/health")
def health():
    return {"status": "ok"}
