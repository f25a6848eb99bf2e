"""Resume Enhancer - ATS-oriented resume review (Pro only)."""

from typing import Any, Dict

from devsmentor.features.models import JSON_OBJECT, CompletionRequest
from devsmentor.features.prompt_helpers import clean_input, json_instruction, safe_list
from devsmentor.features.protocols import BaseCareerFeature

MAX_RESUME_CHARS = 12000

RESPONSE_EXAMPLE = {
    "score": 75,
    "atsScore": 70,
    "strengths": ["Strength with a specific example from the resume"],
    "improvements": ["Specific improvement suggestion"],
    "suggestions": ["Actionable suggestion"],
    "missingKeywords": ["keyword1", "keyword2"],
    "formatIssues": ["Issue 1"],
}


def _clamp_score(value: Any) -> int:
    try:
        score = int(round(float(value)))
    except (TypeError, ValueError, OverflowError):
        return 0
    return max(0, min(100, score))


class ResumeEnhancer(BaseCareerFeature):
    """Scores a resume and lists strengths, gaps and missing keywords."""

    def __init__(self, gate: Any, dispatcher: Any, **options: Any) -> None:
        super().__init__(
            feature_id="resume_enhancer",
            gate_feature="resume_enhancement",
            display_name="Resume Enhancer",
            gate=gate,
            dispatcher=dispatcher,
            **options,
        )

    def required_inputs(self) -> tuple:
        return ("resume_text",)

    def _build_request(self, **inputs: Any) -> CompletionRequest:
        resume = str(inputs["resume_text"]).strip()[:MAX_RESUME_CHARS]
        return CompletionRequest(
            system_prompt=(
                "You are an expert resume reviewer and ATS specialist for tech roles."
            ),
            user_prompt=(
                f"Analyze this resume and provide detailed feedback:\n\n{resume}\n\n"
                f"{json_instruction(RESPONSE_EXAMPLE)}"
            ),
            temperature=0.7,
            json_shape=JSON_OBJECT,
            label=self.feature_id,
        )

    def _postprocess(self, payload: Any, inputs: Dict[str, Any]) -> Any:
        if not isinstance(payload, dict):
            return payload
        review = {
            "score": _clamp_score(payload.get("score")),
            "atsScore": _clamp_score(payload.get("atsScore")),
        }
        for key in ("strengths", "improvements", "suggestions", "missingKeywords", "formatIssues"):
            review[key] = [clean_input(item, max_chars=500) for item in safe_list(payload, key)]
        return review
