"""
Daxue Reader - Interpretation Requests
Builds the generation request for a passage and reads the generated text
back out of a Gemini generateContent response.
"""

from typing import Any, Dict

import config
from core.errors import InterpretationError


PROMPT_TEMPLATE = """你是一位精通中国传统文化和家庭教育的智慧导师。请根据以下《大学》原文，为家长提供学习指导。

原文：
{text}

请严格按以下格式提供解读，每个部分都必须简洁精炼：

## 一、白话文解释
纯粹的现代汉语翻译，只翻译原文含义，不要任何解读、引申或额外信息。一段话即可。

## 二、家庭教育智慧
只写一段话。直接阐述这段经典与家庭教育的内在逻辑关系，重在推导而非说教。不要分点，不要列举。

## 三、普通家长案例
只写一段话。描述一个具体的、真实感强的日常场景，让读者感觉这是真实发生的事情。要有具体的情境（如：周末早上、放学后、饭桌上等），具体的对话或行为，具体的后果。用"有位妈妈"、"一个孩子"等泛称，不要用具体人名。场景要贴近生活，是普通家长容易犯的常见问题。

## 四、智慧家长案例
只写一段话。针对上面普通家长案例中的同一个具体场景，描述另一位家长如何运用这段经典的智慧做出不同的选择。要有同样具体的情境、对话或行为、以及积极的结果。让读者能清晰对比两种做法的差异。"""

DEFAULT_ERROR_MESSAGE = "API请求失败"
MALFORMED_RESPONSE_MESSAGE = "AI响应格式异常"


def build_interpretation_prompt(text: str) -> str:
    """Fill the four-section prompt with the (already cleaned) passage text."""
    return PROMPT_TEMPLATE.format(text=text)


def build_generation_request(
    text: str,
    temperature: float = config.INTERPRET_TEMPERATURE,
    max_output_tokens: int = config.INTERPRET_MAX_OUTPUT_TOKENS
) -> Dict[str, Any]:
    """
    Shape a generateContent request body for a passage.

    Args:
        text: Cleaned passage text
        temperature: Sampling temperature
        max_output_tokens: Generation length cap

    Returns:
        Request payload ready to post to /api/interpret
    """
    return {
        "contents": [{"parts": [{"text": build_interpretation_prompt(text)}]}],
        "generationConfig": {
            "temperature": temperature,
            "maxOutputTokens": max_output_tokens,
        },
    }


def extract_response_text(body: Any) -> str:
    """
    Pull the generated text out of a generateContent response.

    Raises:
        InterpretationError: If the body has no candidate text
    """
    try:
        text = body["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        text = None

    if not text or not isinstance(text, str):
        raise InterpretationError(MALFORMED_RESPONSE_MESSAGE)
    return text


def extract_error_message(body: Any) -> str:
    """Get the user-visible message from an upstream error body."""
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return DEFAULT_ERROR_MESSAGE
