"""
School Reporting Analytics — statistics and report engine over HTTP.

Run with:  uvicorn main:app --reload   (from the backend/ directory)
"""

import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Routers read PASS_MARK at import time, so the .env file goes first.
load_dotenv()

from core.export import ExportFormat
from core.report_templates import TemplateType
from routes.analyze import router as analyze_router
from routes.reports import router as reports_router

APP_VERSION = "1.0.0"
SCHOOL_NAME = os.getenv("SCHOOL_NAME", "My School")
PASS_MARK = float(os.getenv("PASS_MARK", "40"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:5173,http://localhost:3000").split(",")
    if origin.strip()
]

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)-8s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(
    title="School Reporting API",
    description="Class metrics, trends, comparisons and exportable report templates.",
    version=APP_VERSION,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(analyze_router, prefix="/api/analyze", tags=["Statistics"])
app.include_router(reports_router, prefix="/api/reports", tags=["Reports"])

logger.info("Serving %s (pass mark %s, CORS %s)", SCHOOL_NAME, PASS_MARK, CORS_ORIGINS)


@app.get("/api/health")
async def health():
    return {"status": "ok", "version": APP_VERSION}


@app.get("/api/config")
async def config():
    """School settings plus the template types and export formats on offer."""
    return {
        "school_name": SCHOOL_NAME,
        "pass_mark": PASS_MARK,
        "template_types": [t.value for t in TemplateType],
        "export_formats": [f.value for f in ExportFormat],
    }
