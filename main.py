"""
结算服务 HTTP 入口

    uvicorn main:app --reload
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware import LoggingMiddleware, RequestIDMiddleware
from api.routes import checkout, coupons, payments, payouts, refunds
from core.config import settings
from core.exceptions import register_exception_handlers
from core.logging_config import configure_logging, get_logger
from core.response import success_response
from infrastructure.database import create_tables, engine


configure_logging()
logger = get_logger(__name__)

API_PREFIX = "/api/v1"
ROUTERS = (payments.router, checkout.router, coupons.router, refunds.router, payouts.router)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.DEBUG:
        # local convenience only; deployed environments run `alembic upgrade head`
        await create_tables()
        logger.info("database_tables_created")
    logger.info("application_started", environment=settings.ENVIRONMENT, version=settings.VERSION)
    yield
    await engine.dispose()
    logger.info("application_shutdown")


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
        description="课程平台结算服务：费用拆分、优惠券、支付/订阅对账、退款与讲师分账",
    )

    # add_middleware 后加的在外层：CORS -> RequestID -> Logging -> 路由
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)
    for router in ROUTERS:
        app.include_router(router, prefix=API_PREFIX)

    @app.get("/health", tags=["Health"])
    async def health_check():
        return success_response(data={"status": "healthy", "version": settings.VERSION}, message="OK")

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
