# lounge/main.py
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from lounge.middleware import RequestIdMiddleware
from lounge.db import Base, engine
from lounge.config import settings
from lounge.errors import GroupOperationError, LoungeError
from lounge.util.log import configure_logging

from lounge.routers import activity, bookings, devices, groups, inventory, pricing

configure_logging(settings.LOG_LEVEL)

app = FastAPI(title="Lounge API", version="0.1.0")

@app.on_event("startup")
def init_db():
    Base.metadata.create_all(bind=engine)

@app.exception_handler(LoungeError)
def lounge_error(request: Request, exc: LoungeError):
    body = {"detail": exc.message, "code": exc.code}
    if isinstance(exc, GroupOperationError):
        body.update(exc.as_dict())
    return JSONResponse(status_code=exc.status_code, content=body)

# Middlewares
app.add_middleware(RequestIdMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(devices.router)
app.include_router(pricing.router)
app.include_router(inventory.router)
app.include_router(bookings.router)
app.include_router(groups.router)
app.include_router(activity.router)

@app.get("/healthz")
def healthz():
    return {"ok": True}

def run():
    import uvicorn
    uvicorn.run("lounge.main:app", host=settings.HOST, port=settings.PORT)
