"""Prompt templates and response parsing shared by every provider adapter."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

from storyscope.models.content import ContentAnalysis, ContentItem, Storyboard

logger = logging.getLogger(__name__)

_JSON_BLOCK_RE = re.compile(r"\{[\s\S]*\}")

ANALYSIS_SYSTEM_PROMPT = (
    "You are an expert content analyzer specializing in video content analysis. "
    "Provide detailed, structured analysis of video content including themes, "
    "sentiment, and key insights."
)
STORYBOARD_SYSTEM_PROMPT = (
    "You are a professional video storyboard creator. Generate detailed "
    "storyboard sequences for video narration based on the content analysis "
    "provided."
)
SUMMARY_SYSTEM_PROMPT = (
    "You are a professional content analyst creating comprehensive reports "
    "from video analysis data."
)
CONNECTION_TEST_PROMPT = "Respond with: connection test successful"

ANALYSIS_TEMPERATURE = 0.3
STORYBOARD_TEMPERATURE = 0.4
SUMMARY_TEMPERATURE = 0.2
CONNECTION_TEST_MAX_TOKENS = 50


@dataclass(frozen=True, slots=True)
class StoryboardTemplate:
    structure: Tuple[str, ...]
    scene_length: str
    style: str
    elements: Tuple[str, ...]


STORYBOARD_TEMPLATES: Dict[str, StoryboardTemplate] = {
    "professional": StoryboardTemplate(
        structure=("introduction", "setup", "development", "climax", "resolution", "conclusion"),
        scene_length="45-90 seconds",
        style="Documentary-style narration with clear structure and professional transitions",
        elements=("Title cards", "B-roll footage", "Expert interviews", "Data visualizations"),
    ),
    "entertainment": StoryboardTemplate(
        structure=("hook", "introduction", "main_content", "engagement", "climax", "outro"),
        scene_length="30-60 seconds",
        style="Engaging and dynamic with quick cuts and audience interaction",
        elements=("Jump cuts", "Graphics overlays", "Sound effects", "Call-to-action"),
    ),
    "educational": StoryboardTemplate(
        structure=(
            "learning_objectives",
            "introduction",
            "explanation",
            "examples",
            "practice",
            "summary",
        ),
        scene_length="60-120 seconds",
        style="Clear explanations with visual aids and step-by-step progression",
        elements=("Diagrams", "Step-by-step visuals", "Examples", "Knowledge checks"),
    ),
    "horror": StoryboardTemplate(
        structure=("atmosphere", "introduction", "buildup", "investigation", "revelation", "conclusion"),
        scene_length="45-75 seconds",
        style="Atmospheric building with suspense and dramatic reveals",
        elements=("Dark lighting", "Suspenseful music", "Close-ups", "Environmental shots"),
    ),
    "news": StoryboardTemplate(
        structure=("headline", "background", "investigation", "evidence", "implications", "summary"),
        scene_length="30-45 seconds",
        style="Factual reporting with clear information delivery",
        elements=("News graphics", "Location shots", "Interview clips", "Data presentations"),
    ),
    "tutorial": StoryboardTemplate(
        structure=("introduction", "overview", "preparation", "step_by_step", "tips", "conclusion"),
        scene_length="60-90 seconds",
        style="Clear instruction with hands-on demonstration",
        elements=("Close-up shots", "Step demonstrations", "Tools/materials", "Result showcases"),
    ),
}
DEFAULT_STORYBOARD_TEMPLATE = "professional"

# Analysis content types that map onto a differently named template
_CONTENT_TYPE_ALIASES = {
    "documentary": "professional",
    "how-to": "tutorial",
    "paranormal": "horror",
    "review": "professional",
}

# Checked in order; the first matching title wins
_TITLE_HINTS = [
    (re.compile(r"how to|tutorial|guide|learn"), "tutorial"),
    (re.compile(r"horror|scary|paranormal|ghost"), "horror"),
    (re.compile(r"news|breaking|report|update"), "news"),
    (re.compile(r"education|explain|science"), "educational"),
    (re.compile(r"entertainment|funny|amazing"), "entertainment"),
]


def determine_content_type(
    item: ContentItem, analysis: Optional[ContentAnalysis] = None
) -> str:
    """Pick the storyboard template name for an item.

    The analysis content type wins when it names or aliases a template;
    otherwise keywords in the title decide, then the professional template.
    """
    if analysis is not None and analysis.content_type:
        content_type = analysis.content_type.strip().lower()
        if content_type in STORYBOARD_TEMPLATES:
            return content_type
        if content_type in _CONTENT_TYPE_ALIASES:
            return _CONTENT_TYPE_ALIASES[content_type]

    title = (item.title or "").lower()
    for pattern, template_name in _TITLE_HINTS:
        if pattern.search(title):
            return template_name
    return DEFAULT_STORYBOARD_TEMPLATE


_ANALYSIS_TEMPLATE = """
Analyze the following content and provide a structured analysis:

Title: {title}
Channel: {channel}
Duration: {duration}
Views: {views}
Upload Date: {upload_date}
Description: {description}

Please provide analysis in the following JSON format:
{{
    "summary": "Brief summary of the video content",
    "themes": ["theme1", "theme2", "theme3"],
    "sentiment": "positive/negative/neutral",
    "sentimentScore": 0.0,
    "keyTopics": ["topic1", "topic2", "topic3"],
    "contentType": "educational/entertainment/documentary/horror/etc",
    "targetAudience": "description of target audience",
    "credibilityScore": 0.0,
    "engagementFactors": ["factor1", "factor2"],
    "notableElements": ["element1", "element2"],
    "recommendations": "recommendations for similar content"
}}

Provide only valid JSON response."""

_STORYBOARD_TEMPLATE = """
Create a detailed storyboard for video narration based on the following video and analysis:

Video Data:
- Title: {title}
- Channel: {channel}
- Duration: {duration}
- Description: {description}

Analysis Data:
- Summary: {summary}
- Content Type: {content_type}
- Key Topics: {key_topics}
- Notable Elements: {notable_elements}

Storytelling template ({template_name}):
- Structure: {structure}
- Scene length: {scene_length}
- Style: {style}
- Suggested elements: {elements}

Create a storyboard with 5-8 scenes in the following JSON format:
{{
    "title": "Storyboard for [Video Title]",
    "totalScenes": 0,
    "estimatedDuration": "X minutes",
    "scenes": [
        {{
            "sequenceNumber": 1,
            "sceneTitle": "Scene title",
            "duration": "30 seconds",
            "narrationText": "Detailed narration script for this scene",
            "visualElements": ["visual1", "visual2", "visual3"],
            "audioCues": ["audio1", "audio2"],
            "transitionNotes": "How to transition to next scene"
        }}
    ],
    "productionNotes": "Overall production guidance"
}}

Focus on creating engaging narration that would work well for the {content_type} content type.
Provide only valid JSON response."""

_SUMMARY_TEMPLATE = """
Create a comprehensive analysis report based on the following video data:

{item_summaries}

Generate a detailed report covering:
1. Overall trends and patterns
2. Content themes analysis
3. Audience engagement insights
4. Sentiment analysis summary
5. Recommendations for content creators
6. Market insights and opportunities

Make the report professional, detailed, and actionable."""


def build_analysis_prompt(item: ContentItem) -> str:
    return _ANALYSIS_TEMPLATE.format(
        title=item.title,
        channel=item.channel_name,
        duration=item.duration,
        views=item.view_count,
        upload_date=item.upload_date,
        description=item.description or "No description available",
    )


def build_storyboard_prompt(
    item: ContentItem, analysis: Optional[ContentAnalysis]
) -> str:
    template_name = determine_content_type(item, analysis)
    template = STORYBOARD_TEMPLATES[template_name]
    fields = {
        "title": item.title,
        "channel": item.channel_name,
        "duration": item.duration,
        "description": item.description or "No description",
        "template_name": template_name,
        "structure": " -> ".join(template.structure),
        "scene_length": template.scene_length,
        "style": template.style,
        "elements": ", ".join(template.elements),
    }
    if analysis is None:
        return _STORYBOARD_TEMPLATE.format(
            summary="No summary available",
            content_type="general",
            key_topics="No key topics available",
            notable_elements="No notable elements available",
            **fields,
        )
    return _STORYBOARD_TEMPLATE.format(
        summary=analysis.summary or "No summary available",
        content_type=analysis.content_type or "general",
        key_topics=", ".join(analysis.key_topics) or "No key topics available",
        notable_elements=", ".join(analysis.notable_elements)
        or "No notable elements available",
        **fields,
    )


def build_summary_prompt(
    items: Sequence[ContentItem], analyses: Sequence[Optional[ContentAnalysis]]
) -> str:
    blocks = []
    for index, item in enumerate(items):
        analysis = analyses[index] if index < len(analyses) else None
        themes = ", ".join(analysis.themes) if analysis and analysis.themes else "N/A"
        blocks.append(
            "\n".join(
                [
                    f"Video {index + 1}: {item.title}",
                    f"- Channel: {item.channel_name}",
                    f"- Views: {item.view_count}",
                    f"- Themes: {themes}",
                    f"- Sentiment: {analysis.sentiment if analysis else 'N/A'}",
                    f"- Content Type: {analysis.content_type if analysis else 'N/A'}",
                ]
            )
        )
    return _SUMMARY_TEMPLATE.format(item_summaries="\n\n".join(blocks))


def parse_analysis_response(text: str) -> ContentAnalysis:
    """Extract the analysis JSON object from a provider response.

    Responses without any JSON object keep the first 500 characters as the
    summary. Malformed JSON yields ``ContentAnalysis.default()``.
    """
    match = _JSON_BLOCK_RE.search(text or "")
    if not match:
        fallback = ContentAnalysis.default()
        fallback.summary = (text or "")[:500]
        return fallback
    try:
        payload = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        logger.error("Error parsing analysis response: %s", exc)
        return ContentAnalysis.default()
    if not isinstance(payload, dict):
        return ContentAnalysis.default()
    try:
        return ContentAnalysis.from_payload(payload)
    except (TypeError, ValueError, OverflowError, AttributeError) as exc:
        logger.error("Error normalising analysis response: %s", exc)
        return ContentAnalysis.default()


def parse_storyboard_response(text: str) -> Storyboard:
    match = _JSON_BLOCK_RE.search(text or "")
    if not match:
        return Storyboard.default()
    try:
        payload = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        logger.error("Error parsing storyboard response: %s", exc)
        return Storyboard.default()
    if not isinstance(payload, dict):
        return Storyboard.default()
    try:
        return Storyboard.from_payload(payload)
    except (TypeError, ValueError, OverflowError, AttributeError) as exc:
        logger.error("Error normalising storyboard response: %s", exc)
        return Storyboard.default()
