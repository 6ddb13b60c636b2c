"""
Remote LLM classification via the Anthropic Messages API.

Sends the filename and origin URL with a system prompt listing the valid asset
types, and reads a JSON object back out of the reply text.
"""

from typing import Optional

import httpx
from loguru import logger

from app.models.schemas import AssetType, Confidence
from app.utils.helpers import extract_json_object
from domains.file_ingest.processors.strategies.base import Answered, Asset, Declined, StrategyOutcome, detail_text

API_VERSION = "2023-06-01"

SYSTEM_PROMPT = """You are a media asset classifier for video production workflows. Classify the given file into exactly one type based on filename, metadata, and context.

Valid asset types:
- Music: Background music, songs, instrumentals, beats, scores
- SFX: Sound effects, foley, ambience, nature sounds, impacts, whooshes, UI sounds, transitions
- VO: Voice-over, narration, dialogue, speech recordings
- MotionGraphic: Motion graphic templates (.mogrt), animated titles, lower thirds
- Graphic: Static images, photos, illustrations for video production
- StockFootage: Stock video clips, B-roll footage

Important rules:
- Files from Epidemic Sound, Artlist, etc. with descriptive names like "Organic, Wind, Cool" are typically SFX, NOT music
- Nature sounds (wind, rain, thunder, water, fire, birds) are always SFX
- Files with BPM, key signature, or artist names are usually Music
- "ES_" prefix = Epidemic Sound. Check the descriptive words carefully to distinguish Music vs SFX

For Music: also determine genre and mood
For SFX: also determine a category (e.g. "Wind", "Impacts", "Whooshes", "Ambience", "Foley", "UI", "Transitions")
Rate your certainty as "high", "medium" or "low".

Respond with ONLY a JSON object, no other text:
{"assetType": "SFX", "genre": null, "mood": null, "sfxCategory": "Wind", "confidence": "high"}"""


def build_user_message(asset: Asset) -> str:
    parts = [
        f"Filename: {asset.filename}",
        f"Extension: {asset.extension}",
    ]
    if asset.origin_url:
        parts.append(f"Origin URL: {asset.origin_url}")
    return "\n".join(parts)


class RemoteLLMStrategy:
    """Strategy backed by a hosted LLM."""

    name = "remote_llm"

    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        api_url: str = "https://api.anthropic.com/v1/messages",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.api_url = api_url
        self.transport = transport

    async def attempt(self, asset: Asset, timeout: float) -> StrategyOutcome:
        if not self.api_key:
            return Declined("no API key configured")

        payload = {
            "model": self.model,
            "max_tokens": 200,
            "system": SYSTEM_PROMPT,
            "messages": [{"role": "user", "content": build_user_message(asset)}],
        }
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": API_VERSION,
            "content-type": "application/json",
        }

        try:
            async with httpx.AsyncClient(timeout=timeout, transport=self.transport) as client:
                response = await client.post(self.api_url, json=payload, headers=headers)

        except httpx.HTTPError as e:
            logger.warning(f"Remote LLM request failed: {e}")
            return Declined(f"network error: {e.__class__.__name__}")

        if response.status_code != 200:
            logger.warning(f"Remote LLM HTTP {response.status_code}: {response.text[:200]}")
            return Declined(f"HTTP {response.status_code}")

        output = self._parse_reply(response)
        if output is None:
            return Declined("unparseable reply")

        asset_type = AssetType.parse(output.get("assetType"))
        if asset_type is AssetType.UNKNOWN:
            return Declined("model returned Unknown")

        return Answered(
            asset_type=asset_type,
            confidence=Confidence.parse(output.get("confidence"), Confidence.MEDIUM),
            genre=detail_text(output.get("genre")),
            mood=detail_text(output.get("mood")),
            sfx_category=detail_text(output.get("sfxCategory")),
        )

    def _parse_reply(self, response: httpx.Response) -> Optional[dict]:
        try:
            body = response.json()
            text = body["content"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError):
            logger.warning("Remote LLM reply did not have the expected shape")
            return None

        output = extract_json_object(text)
        if output is None:
            logger.warning(f"No JSON found in remote LLM reply: {text[:200]}")
        return output
