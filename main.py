from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from middleware import add_request_id_and_process_time
from database import create_tables
from logger import get_logger
from routers import router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Creating database tables...")
    await create_tables()
    yield
    logger.info("Application shutdown complete.")

app = FastAPI(lifespan=lifespan, title="Country Data, Country Currency & Exchange API", version="1.0.0")

app.middleware('http')(add_request_id_and_process_time)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = {}
    for err in exc.errors():
        field = str(err["loc"][-1]) if err.get("loc") else "body"
        details.setdefault(field, err.get("msg", "is invalid"))
    logger.info(f"Validation failed for {request.method} {request.url.path}: {details}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Validation failed", "details": details},
    )


@app.get("/")
def root():
    logger.info("Root endpoint called")
    return {"message": "Welcome to FastAPI App for Country Data, Country Currency & Exchange API"}

app.include_router(router, tags=["Countries"])
