import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pymongo.database import Database

import auth
import projects
import tasks
import users
import workspaces
from config import Settings, get_settings
from database import connect, ensure_indexes
from errors import register_error_handlers
from observability import add_request_logging, setup_logging

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings.log_level, settings.log_format)
    if settings.ephemeral_secret:
        logger.warning("JWT_SECRET is not set; using a per-process secret, tokens will not survive a restart")

    if database is None:
        database = connect(settings.mongodb_uri, settings.database_name)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        ensure_indexes(app.state.db)
        logger.info(f"Workhub API started ({settings.environment}), database {app.state.db.name}")
        yield

    app = FastAPI(title="Workhub API", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.db = database

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Origin", "X-Requested-With", "Content-Type", "Accept", "Authorization", "x-auth-token"],
    )
    add_request_logging(app)
    register_error_handlers(app)

    for module in (auth, users, workspaces, projects, tasks):
        app.include_router(module.router)

    @app.get("/")
    def read_root():
        return {"message": "API is running..."}

    @app.get("/api/healthcheck")
    def healthcheck():
        return {"status": "ok", "time": datetime.now(timezone.utc).isoformat()}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=get_settings().port)
