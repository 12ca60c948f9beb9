from functools import partial

import anyio
from fastapi import APIRouter, Depends, HTTPException

from ..flows import ContentGenerationError
from ..flows.expression_context import quick_definition
from ..flows.visual_context import VisualContextFlow
from ..models.vocabulary import (
    ImageAnalysisRequest,
    ImageAnalysisResult,
    QuickDefinitionRequest,
    QuickDefinitionResponse,
)
from ..providers import LLMClient
from .deps import get_llm, get_visual_flow

router = APIRouter(tags=["visual"])


@router.post("/analyze", response_model=ImageAnalysisResult)
async def analyze_image(
    req: ImageAnalysisRequest,
    flow: VisualContextFlow = Depends(get_visual_flow),
) -> ImageAnalysisResult:
    """画像から一人称ナラティブと語彙候補を生成する。"""

    try:
        return await anyio.to_thread.run_sync(flow.run, req.image_base64, req.mime_type)
    except ContentGenerationError as exc:
        raise HTTPException(
            status_code=502,
            detail={"message": "Failed to analyze image.", "reason_code": exc.reason_code},
        ) from exc


@router.post("/definition", response_model=QuickDefinitionResponse)
async def define_in_context(
    req: QuickDefinitionRequest,
    llm: LLMClient = Depends(get_llm),
) -> QuickDefinitionResponse:
    """ナラティブ中で選択された語句の短い定義を返す。"""

    text = req.text.strip()
    definition = await anyio.to_thread.run_sync(partial(quick_definition, text, req.context, llm=llm))
    return QuickDefinitionResponse(text=text, definition=definition)
