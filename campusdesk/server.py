import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import APIRouter, FastAPI
from fastapi.middleware.gzip import GZipMiddleware
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from starlette.middleware.cors import CORSMiddleware

from .config import Settings, get_settings
from .database import create_client, ensure_indexes
from .errors import install_error_handlers
from .models import Role
from .routes.admin import admin_router
from .routes.assessments import assessments_router
from .routes.attendance import attendance_router
from .routes.auth import auth_router
from .routes.coordinator import coordinator_router
from .routes.courses import courses_router
from .routes.documents import documents_router
from .routes.lesson_plans import lesson_plans_router
from .routes.notifications import notifications_router
from .routes.student import student_router
from .routes.teacher import teacher_router
from .routes.users import users_router
from .workflows import create_account

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"

ROUTERS = [
    auth_router,
    admin_router,
    coordinator_router,
    teacher_router,
    student_router,
    users_router,
    courses_router,
    attendance_router,
    assessments_router,
    documents_router,
    lesson_plans_router,
    notifications_router,
]


async def seed_defaults(db: AsyncIOMotorDatabase, settings: Settings) -> None:
    try:
        await ensure_indexes(db)
    except Exception as e:
        logger.error(f"Error creating indexes: {e}")
    try:
        if settings.seed_admin_email and settings.seed_admin_password \
                and await db.accounts.count_documents({}) == 0:
            account = await create_account(
                db,
                settings.seed_admin_email,
                settings.seed_admin_password,
                Role.ADMIN,
                name="Administrator",
            )
            logger.info("Seeded admin account %s", account["email"])
    except Exception as e:
        logger.error(f"Error during database seeding: {e}")
        logger.warning("Continuing without a seeded admin account.")


def create_app(database: Optional[AsyncIOMotorDatabase] = None, settings: Optional[Settings] = None) -> FastAPI:
    """Build the application. Tests pass an in-memory ``database``; otherwise a motor client is opened."""
    settings = settings or get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    client: Optional[AsyncIOMotorClient] = None
    if database is None:
        client = create_client(settings)
        database = client[settings.db_name]

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if client is not None:
            try:
                await client.admin.command('ping')
                logger.info("MongoDB connection successful")
                await seed_defaults(database, settings)
            except Exception as e:
                logger.error(f"MongoDB connection failed: {e}")
                logger.error("Please check your MONGO_URL in .env file and ensure MongoDB is accessible")
        else:
            await seed_defaults(database, settings)
        yield
        if client is not None:
            client.close()

    app = FastAPI(title="Campus Desk API", lifespan=lifespan)
    app.state.settings = settings
    app.state.db = database

    install_error_handlers(app)

    api_router = APIRouter(prefix=API_PREFIX)
    for router in ROUTERS:
        api_router.include_router(router)

    @api_router.get("/health")
    async def health():
        return {"success": True, "status": "ok"}

    app.include_router(api_router)

    app.add_middleware(
        CORSMiddleware,
        allow_credentials=True,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1024)
    return app


app = create_app()
