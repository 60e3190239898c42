import logging

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import HTTPException, RequestValidationError
from fastapi.responses import JSONResponse

from pcf.config import settings, validate_environment
from pcf.api import notifications as notification_routes
from pcf.api import pcf as pcf_routes
from pcf.dependencies import get_store
from pcf.errors import PCFError

logger = logging.getLogger(__name__)

validate_environment(settings)

app = FastAPI(title="PCF Backend", version="0.1.0")


# JSON error responses
@app.exception_handler(PCFError)
async def pcf_error_handler(request: Request, exc: PCFError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail if exc.detail else str(exc)})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=422, content={"detail": jsonable_errors(exc)})


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may carry exception instances that JSON cannot encode
    return [{k: v for k, v in err.items() if k != "ctx"} for err in exc.errors()]


settings.apply_middleware(app)


@app.get("/")
def root():
    return {"message": "PCF backend is running.", "status": "healthy"}


@app.head("/")
def root_head():
    return Response(status_code=200)


@app.get("/health")
def health_check():
    store = get_store()
    return {"status": "ok", "store": store.kind}


app.include_router(pcf_routes.router)

# Recent notification buffer is a debugging aid only
if not settings.is_production:
    app.include_router(notification_routes.router)


@app.on_event("startup")
async def on_startup():
    logger.info(f"PCF backend started (environment={settings.environment}, store={get_store().kind})")
