import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from quizhub.core.config import settings
from quizhub.core.errors import QuizError, STATUS_BY_CATEGORY
from quizhub.routes import attempts, certificates, leaderboard

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

app = FastAPI(title="QuizHub API")

# CORS middleware configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(QuizError)
async def quiz_error_handler(request: Request, exc: QuizError):
    status_code = STATUS_BY_CATEGORY.get(exc.category, 400)
    logger.info(f"{request.method} {request.url.path} rejected: {exc.code}")
    return JSONResponse(status_code=status_code, content={"detail": exc.to_detail()})

@app.get("/health")
async def health():
    return {"status": "ok"}

# Include routers
app.include_router(attempts.router, prefix="/api", tags=["attempts"])
app.include_router(certificates.router, prefix="/api", tags=["certificates"])
app.include_router(leaderboard.router, prefix="/api", tags=["leaderboard"])
