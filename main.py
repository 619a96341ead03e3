import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from app.core.config import CORS_ORIGINS, LOG_LEVEL
from app.core.exceptions import register_exception_handlers
from api.auth import router as auth_router
from api.users import router as users_router
from api.roles import router as roles_router
from api.modules import router as modules_router
from api.time_tracker import router as time_tracker_router

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)

app = FastAPI(title="WorkTrack API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

@app.get("/")
async def root():
    return {"message": "Welcome to WorkTrack API"}

app.include_router(auth_router)
app.include_router(users_router)
app.include_router(roles_router)
app.include_router(modules_router)
app.include_router(time_tracker_router)
