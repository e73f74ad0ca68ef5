# weekly_brief/main.py
from fastapi import FastAPI

from .logging_setup import setup_logging, get_logger
from .middleware import add_middleware
from .exception_handling import register_exception_handlers
from .lifespan import lifespan

from .routers import editions, health, readers

setup_logging()  # <-- set up logging ASAP
logger = get_logger("weekly_brief.main")

app = FastAPI(title="Weekly Brief", version="0.1.0", lifespan=lifespan)
add_middleware(app)

register_exception_handlers(app)

app.include_router(health.router)
app.include_router(editions.router)
app.include_router(readers.router)
