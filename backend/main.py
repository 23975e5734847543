import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from routes.print_areas import router as print_areas_router
from routes.placements import router as placements_router
from routes.compliance import router as compliance_router
from deps import printful, store


app = FastAPI(title="Print Placement API", version="1.0.0")

# CORS configuration - allow all origins for development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(print_areas_router)
app.include_router(placements_router)
app.include_router(compliance_router)


@app.get("/")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "message": "Print Placement API is running"}


@app.get("/health")
async def health():
    """Service status for container orchestration."""
    return {
        "status": "healthy",
        "printful": "configured" if printful.is_configured else "not configured",
        "placements": len(store),
    }


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=logging.INFO, format="[%(asctime)s %(name)s] [%(levelname)s] %(message)s")
    uvicorn.run(app, host="0.0.0.0", port=8000)
