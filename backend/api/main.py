"""
FastAPI main application.
"""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from core.config import API_V1_PREFIX, CORS_ORIGINS
from core.config_validator import config_validator
from core.errors import PipelineError
from api.errors import pipeline_error_handler
from api.routes import cache, outlines, progress, topics

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

app = FastAPI(
    title="Learning Content API",
    description="Progressive learning content pipeline API",
    version="1.0.0",
)

@app.on_event("startup")
async def validate_configuration():
    """Validate configuration on application startup."""

    print("🔍 Validating configuration...")

    validation_result = config_validator.validate_all()

    # Print warnings
    for warning in validation_result["warnings"]:
        print(f"⚠️  WARNING: {warning}")

    # Print errors and fail if invalid
    if not validation_result["valid"]:
        print("\n❌ CONFIGURATION ERRORS DETECTED:\n")
        for error in validation_result["errors"]:
            print(f"   ❌ {error}")
        print("\n🛑 Application startup aborted due to configuration errors.\n")
        raise SystemExit(1)

    print("✅ Configuration validated successfully\n")

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(PipelineError, pipeline_error_handler)

# Include routers
app.include_router(topics.router, prefix=f"{API_V1_PREFIX}/topics", tags=["topics"])
app.include_router(outlines.router, prefix=f"{API_V1_PREFIX}/topics", tags=["outlines"])
app.include_router(progress.router, prefix=f"{API_V1_PREFIX}/topics", tags=["progress"])
app.include_router(cache.router, prefix=API_V1_PREFIX, tags=["cache"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": "Learning Content API", "version": "1.0.0"}


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
