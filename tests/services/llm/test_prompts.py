import json

from storyscope.models.content import ContentAnalysis
from storyscope.services.llm import prompts


def test_analysis_prompt_includes_item_fields(sample_item):
    text = prompts.build_analysis_prompt(sample_item)

    assert "Title: The Haunting of Hill Road" in text
    assert "Channel: Night Tales" in text
    assert "Views: 1.2M views" in text
    assert '"sentimentScore": 0.0' in text


def test_analysis_prompt_marks_missing_description(sample_item):
    sample_item.description = ""

    assert "Description: No description available" in prompts.build_analysis_prompt(
        sample_item
    )


def test_storyboard_prompt_without_analysis_uses_placeholders(sample_item):
    text = prompts.build_storyboard_prompt(sample_item, None)

    assert "Summary: No summary available" in text
    assert "Content Type: general" in text


def test_storyboard_prompt_with_analysis(sample_item):
    analysis = ContentAnalysis(
        summary="A family is haunted",
        key_topics=["haunting", "family"],
        content_type="horror",
    )

    text = prompts.build_storyboard_prompt(sample_item, analysis)

    assert "Summary: A family is haunted" in text
    assert "Key Topics: haunting, family" in text
    assert "Notable Elements: No notable elements available" in text


def test_summary_prompt_numbers_items(sample_item):
    analysis = ContentAnalysis(summary="s", themes=["ghosts"], sentiment="negative")

    text = prompts.build_summary_prompt([sample_item, sample_item], [analysis])

    assert "Video 1: The Haunting of Hill Road" in text
    assert "- Themes: ghosts" in text
    assert "Video 2: The Haunting of Hill Road" in text
    assert "- Sentiment: N/A" in text


def test_parse_analysis_response_with_wrapped_json():
    payload = {"summary": "ok", "themes": ["a"], "sentiment": "weird", "keyTopics": "solo"}

    analysis = prompts.parse_analysis_response(f"```json\n{json.dumps(payload)}\n```")

    assert analysis.summary == "ok"
    assert analysis.sentiment == "neutral"
    assert analysis.key_topics == ["solo"]


def test_parse_analysis_response_truncates_plain_text():
    analysis = prompts.parse_analysis_response("x" * 900)

    assert analysis.summary == "x" * 500


def test_parse_analysis_response_with_malformed_json():
    analysis = prompts.parse_analysis_response("{summary: missing quotes}")

    assert analysis.summary == "Analysis could not be completed"
    assert analysis.recommendations == "Unable to generate recommendations"


def test_parse_storyboard_response_builds_scenes():
    payload = {
        "title": "Hill Road",
        "estimatedDuration": "4 minutes",
        "scenes": [
            {"sceneTitle": "Arrival", "narrationText": "They arrive.", "visualElements": ["house"]},
            {"sequenceNumber": 7, "duration": "30 seconds"},
        ],
        "productionNotes": "Keep it dark",
    }

    storyboard = prompts.parse_storyboard_response(json.dumps(payload))

    assert storyboard.title == "Hill Road"
    assert storyboard.total_scenes == 2
    assert storyboard.scenes[0].sequence_number == 1
    assert storyboard.scenes[0].visual_elements == ["house"]
    assert storyboard.scenes[1].sequence_number == 7
    assert storyboard.scenes[1].scene_title == "Scene 2"
    assert storyboard.production_notes == "Keep it dark"


def test_parse_storyboard_response_without_json_returns_default():
    storyboard = prompts.parse_storyboard_response("I cannot help with that")

    assert storyboard.title == "Default Storyboard"
    assert storyboard.scenes[0].scene_title == "Introduction"
    assert storyboard.production_notes.startswith("Storyboard generation failed")


def test_parse_storyboard_response_ignores_non_list_scenes():
    storyboard = prompts.parse_storyboard_response('{"title": "x", "scenes": 5}')

    assert storyboard.title == "x"
    assert storyboard.scenes == []
    assert storyboard.total_scenes == 0


def test_parse_storyboard_response_with_overflowing_scene_count():
    text = '{"title": "x", "totalScenes": 1e999, "scenes": [{"sceneTitle": "Only"}]}'

    storyboard = prompts.parse_storyboard_response(text)

    assert storyboard.total_scenes == 1
    assert storyboard.scenes[0].scene_title == "Only"


def test_parse_storyboard_response_when_normalising_fails(monkeypatch):
    def explode(payload):
        raise TypeError("unexpected shape")

    monkeypatch.setattr(prompts.Storyboard, "from_payload", explode)

    storyboard = prompts.parse_storyboard_response('{"title": "x"}')

    assert storyboard.title == "Default Storyboard"


def test_parse_analysis_response_clamps_scores():
    payload = {"summary": "ok", "sentimentScore": 7.0, "credibilityScore": -3}

    analysis = prompts.parse_analysis_response(json.dumps(payload))

    assert analysis.sentiment_score == 1.0
    assert analysis.credibility_score == 0.0


def test_parse_analysis_response_defaults_unusable_scores():
    text = '{"summary": "ok", "sentimentScore": 1e999, "credibilityScore": "high"}'

    analysis = prompts.parse_analysis_response(text)

    assert analysis.sentiment_score == 0.0
    assert analysis.credibility_score == 0.5


def test_parse_analysis_response_caps_list_lengths():
    payload = {
        "summary": "ok",
        "themes": [f"theme{i}" for i in range(15)],
        "keyTopics": [f"topic{i}" for i in range(12)],
        "engagementFactors": [f"factor{i}" for i in range(8)],
        "notableElements": [f"element{i}" for i in range(9)],
    }

    analysis = prompts.parse_analysis_response(json.dumps(payload))

    assert len(analysis.themes) == 10
    assert len(analysis.key_topics) == 10
    assert analysis.engagement_factors == [f"factor{i}" for i in range(5)]
    assert len(analysis.notable_elements) == 5


def test_determine_content_type_prefers_analysis(sample_item):
    assert prompts.determine_content_type(
        sample_item, ContentAnalysis(summary="s", content_type="Educational")
    ) == "educational"
    assert prompts.determine_content_type(
        sample_item, ContentAnalysis(summary="s", content_type="documentary")
    ) == "professional"


def test_determine_content_type_falls_back_to_title(sample_item):
    unknown = ContentAnalysis(summary="s", content_type="vlog")

    sample_item.title = "How to build a birdhouse"
    assert prompts.determine_content_type(sample_item, unknown) == "tutorial"

    sample_item.title = "Real ghost caught on camera"
    assert prompts.determine_content_type(sample_item) == "horror"

    sample_item.title = "Breaking: storm hits the coast"
    assert prompts.determine_content_type(sample_item) == "news"

    sample_item.title = "My weekend"
    assert prompts.determine_content_type(sample_item) == "professional"


def test_storyboard_prompt_includes_template_guidance(sample_item):
    analysis = ContentAnalysis(summary="A family is haunted", content_type="horror")

    text = prompts.build_storyboard_prompt(sample_item, analysis)

    assert "Storytelling template (horror):" in text
    assert "- Structure: atmosphere -> introduction -> buildup" in text
    assert "- Scene length: 45-75 seconds" in text
    assert "Dark lighting, Suspenseful music" in text


def test_storyboard_prompt_without_analysis_uses_title_template(sample_item):
    sample_item.title = "Explain quantum science simply"

    text = prompts.build_storyboard_prompt(sample_item, None)

    assert "Storytelling template (educational):" in text
    assert "Content Type: general" in text
