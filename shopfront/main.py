import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .core.config import get_settings
from .core.db import AsyncSessionLocal, Base, engine
from .core.errors import AllocationExhausted, ValidationError
from .core.responses import ErrorCodes, error_response
from .onboarding import router as onboarding_router
from .orders import router as orders_router
from .products import router as products_router
from .seed import seed_demo_data
from .store_settings import router as store_settings_router


settings = get_settings()
app = FastAPI(title="Shopfront Backend")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(onboarding_router)
app.include_router(store_settings_router)
app.include_router(products_router)
app.include_router(orders_router)


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    details = {"field": exc.field} if exc.field else None
    return JSONResponse(
        status_code=400,
        content=error_response(ErrorCodes.VALIDATION_ERROR, exc.message, details),
    )


@app.exception_handler(AllocationExhausted)
async def allocation_exhausted_handler(request: Request, exc: AllocationExhausted):
    logger.error(f"{request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=503,
        content=error_response(
            ErrorCodes.ALLOCATION_EXHAUSTED,
            "Could not allocate a unique identifier. Please try again.",
            {"attempts": exc.attempts},
        ),
    )


@app.on_event("startup")
async def on_startup():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    if settings.seed_demo_data:
        async with AsyncSessionLocal() as session:
            created = await seed_demo_data(session)
            logger.info(f"Seeded {created} demo stores")


@app.get("/health")
async def healthcheck():
    return {"ok": True}
