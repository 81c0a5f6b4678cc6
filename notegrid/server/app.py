"""
NoteGrid Backend Server

FastAPI proxy between the add-on and its remote services.

Endpoints:
- GET /health: Health check
- POST /analyze: Text and files in, JSON array of {type, text} out
- POST /notify/tag: E-mail a member who was tagged in the discussion

Errors are returned as {"error": "..."} bodies.
"""

import argparse
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, File, Form, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from ..common.config import MAX_UPLOAD_BYTES, NoteGridConfig, ensure_directories, load_config
from ..common.llm_client import LLMClient
from ..common.schemas import NotifyRequest
from .analyzer import AnalysisInputError, IncomingFile, NoteAnalyzer
from .mailer import MailerNotConfigured, TagMailer

load_dotenv()

logger = logging.getLogger("notegrid.server.app")


# Global state
config: Optional[NoteGridConfig] = None
analyzer: Optional[NoteAnalyzer] = None
mailer: Optional[TagMailer] = None
max_upload_bytes: int = MAX_UPLOAD_BYTES


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize components on startup"""
    global config, analyzer, mailer, max_upload_bytes

    logger.info("Starting up...")
    ensure_directories()
    config = load_config()

    llm_client = LLMClient.from_config(config.llm)
    analyzer = NoteAnalyzer(
        llm_client,
        temperature=config.llm.temperature,
        max_tokens=config.llm.max_tokens,
    )
    if analyzer.is_available:
        logger.info("Analyzer ready (%s / %s)", config.llm.provider, llm_client.model)
    else:
        logger.warning("Analyzer has no LLM client; /analyze will fail")

    mailer = TagMailer.from_config(config.email)
    if not mailer.is_configured:
        logger.warning("EMAIL_USER / EMAIL_PASS not set; /notify/tag will fail")

    max_upload_bytes = config.server.max_upload_bytes

    yield

    logger.info("Shutting down...")


app = FastAPI(
    title="NoteGrid Server",
    description="Sticky note extraction and tag notifications for the NoteGrid add-on",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


# =============================================================================
# Endpoints
# =============================================================================

@app.get("/health")
async def health():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "llm_available": analyzer.is_available if analyzer else False,
        "email_configured": mailer.is_configured if mailer else False,
    }


@app.post("/analyze")
async def analyze(
    text: str = Form(""),
    files: Optional[List[UploadFile]] = File(None),
):
    """
    Extract sticky notes from text and uploaded files.

    Images are passed to the model; other files are listed by name only.
    """
    incoming: List[IncomingFile] = []
    for upload in files or []:
        data = await upload.read()
        if len(data) > max_upload_bytes:
            return _error(413, "File too large")
        incoming.append(
            IncomingFile(filename=upload.filename or "file", content_type=upload.content_type, data=data)
        )

    if analyzer is None:
        logger.error("Analyzer not initialized")
        return _error(500, "AI failed")

    try:
        notes = await asyncio.to_thread(analyzer.analyze, text, incoming)
    except AnalysisInputError as e:
        return _error(400, str(e))
    except Exception as e:
        logger.error("AI error: %s", e, exc_info=True)
        return _error(500, "AI failed")

    return JSONResponse(notes)


@app.post("/notify/tag")
async def notify_tag(request: Request):
    """Send a "you were tagged" e-mail"""
    try:
        body = await request.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}

    try:
        req = NotifyRequest.model_validate(body)
    except ValidationError as e:
        logger.warning("Invalid notify request: %s", e)
        return _error(400, "Invalid request")

    if not req.email:
        return _error(400, "Missing email")
    if not req.message:
        return _error(400, "Missing message")

    if mailer is None or not mailer.is_configured:
        return _error(500, "Email credentials not configured")

    try:
        await asyncio.to_thread(
            mailer.send,
            req.email,
            req.message,
            req.tagged_user,
            req.tagged_by,
            req.context,
        )
    except MailerNotConfigured as e:
        return _error(500, str(e))
    except Exception as e:
        logger.error("Email error: %s", e, exc_info=True)
        return JSONResponse(
            {"error": str(e) or type(e).__name__, "code": getattr(e, "smtp_code", None)},
            status_code=500,
        )

    return {"ok": True}


# =============================================================================
# CLI Entry Point
# =============================================================================

def run_server():
    """Run the NoteGrid server"""
    import uvicorn

    cfg = load_config()
    parser = argparse.ArgumentParser(description="Run the NoteGrid backend server.")
    parser.add_argument("--host", default=cfg.server.host, help="Bind address")
    parser.add_argument("--port", type=int, default=cfg.server.port, help="Listen port")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Starting server on http://%s:%s", args.host, args.port)
    uvicorn.run(
        "notegrid.server.app:app",
        host=args.host,
        port=args.port,
        reload=False,
    )


if __name__ == "__main__":
    run_server()
