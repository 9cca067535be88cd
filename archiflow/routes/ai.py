"""
Metered AI endpoints.

Each handler authenticates through its dependencies, lets FastAPI validate
the body, then charges through the access gate before calling the model.
A failed model call does not give the credits back.
"""

import time
from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ..auth import Principal
from ..config import Settings
from ..dependencies import get_ai_client, get_current_user, get_gate, get_settings
from ..gate import AccessGate
from ..services.openrouter import OpenRouterClient, clean_html_response
from ..services.prompts import (
    CLARIFICATION_PREFIX,
    PDF_TEMPLATE_PROMPT,
    render_refine_prompt,
    render_report_prompt,
    transcription_messages,
)
from ..utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/ai")


class TranscribeRequest(BaseModel):
    audio: str = Field(min_length=1, description="Base64 encoded audio")
    mimeType: str = "audio/webm"


class GenerateReportRequest(BaseModel):
    transcription: str = Field(min_length=1)
    projectTitle: str | None = None
    reportTitle: str | None = None
    areas: list[Any] | None = None
    writingStyle: str = "standard"


class RefineReportRequest(BaseModel):
    currentHtml: str = Field(min_length=1)
    userMessage: str = Field(min_length=1)


@router.post("/transcribe")
async def transcribe(
    body: TranscribeRequest,
    user: Principal = Depends(get_current_user),
    ai: OpenRouterClient = Depends(get_ai_client),
    gate: AccessGate = Depends(get_gate),
    settings: Settings = Depends(get_settings),
):
    ticket = await gate.charge(user, settings.cost_for("transcribe"))
    text = await ai.complete(transcription_messages(body.audio, body.mimeType), settings.model_audio, max_tokens=4000)
    return {"success": True, "transcription": text, "remaining": ticket.remaining}


@router.post("/generate-report")
async def generate_report(
    body: GenerateReportRequest,
    user: Principal = Depends(get_current_user),
    ai: OpenRouterClient = Depends(get_ai_client),
    gate: AccessGate = Depends(get_gate),
    settings: Settings = Depends(get_settings),
):
    ticket = await gate.charge(user, settings.cost_for("generate_report"))
    prompt = render_report_prompt(
        body.transcription,
        project_title=body.projectTitle,
        report_title=body.reportTitle,
        date=datetime.now().strftime("%d/%m/%Y"),
        areas=body.areas,
        writing_style=body.writingStyle,
    )
    html = await ai.complete([{"role": "user", "content": prompt}], settings.model_text, max_tokens=16000)
    logger.info("Report generated", uid=user.uid, size=len(html))
    return {
        "success": True,
        "html": clean_html_response(html),
        "reportId": f"report-{int(time.time() * 1000)}",
        "remaining": ticket.remaining,
    }


@router.post("/refine-report")
async def refine_report(
    body: RefineReportRequest,
    user: Principal = Depends(get_current_user),
    ai: OpenRouterClient = Depends(get_ai_client),
    gate: AccessGate = Depends(get_gate),
    settings: Settings = Depends(get_settings),
):
    ticket = await gate.charge(user, settings.cost_for("refine_report"))
    prompt = render_refine_prompt(body.currentHtml, body.userMessage)
    result = await ai.complete([{"role": "user", "content": prompt}], settings.model_text, max_tokens=16000)

    if result.startswith(CLARIFICATION_PREFIX):
        return {
            "success": True,
            "needsClarification": True,
            "message": result[len(CLARIFICATION_PREFIX):].strip(),
            "remaining": ticket.remaining,
        }
    return {"success": True, "html": clean_html_response(result), "remaining": ticket.remaining}


@router.post("/convert-pdf")
async def convert_pdf(
    user: Principal = Depends(get_current_user),
    ai: OpenRouterClient = Depends(get_ai_client),
    gate: AccessGate = Depends(get_gate),
    settings: Settings = Depends(get_settings),
):
    ticket = await gate.charge(user, settings.cost_for("convert_pdf"))
    html = await ai.complete([{"role": "user", "content": PDF_TEMPLATE_PROMPT}], settings.model_text, max_tokens=8000)
    return {"success": True, "html": clean_html_response(html), "remaining": ticket.remaining}
