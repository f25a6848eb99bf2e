"""Career Analysis - market outlook, salary bands and skills for a career path."""

from typing import Any, Dict

from devsmentor.features.models import JSON_OBJECT, CompletionRequest
from devsmentor.features.prompt_helpers import clean_input, json_instruction, safe_list
from devsmentor.features.protocols import BaseCareerFeature

RESPONSE_EXAMPLE = {
    "career": "Career name",
    "summary": "2-3 sentence overview of this career",
    "confidenceScore": 85,
    "salaryRange": {"entry": "INR X-Y LPA", "mid": "INR X-Y LPA", "senior": "INR X-Y LPA"},
    "risk": "Low/Medium/High",
    "alternatives": ["Alternative Career 1", "Alternative Career 2"],
    "requiredSkills": ["Skill 1", "Skill 2", "Skill 3"],
    "growthOutlook": "5-year growth potential",
    "topCompanies": ["Company 1", "Company 2"],
    "demandTrend": "Increasing/Stable/Decreasing",
    "learningPath": "Recommended learning approach",
}


class CareerAnalyzer(BaseCareerFeature):
    """Analyses a single career path for the Indian tech market."""

    def __init__(self, gate: Any, dispatcher: Any, **options: Any) -> None:
        super().__init__(
            feature_id="career_analysis",
            gate_feature="career_analysis",
            display_name="Career Analysis",
            gate=gate,
            dispatcher=dispatcher,
            **options,
        )

    def required_inputs(self) -> tuple:
        return ("career_path",)

    def _build_request(self, **inputs: Any) -> CompletionRequest:
        career = clean_input(inputs["career_path"], max_chars=200)
        return CompletionRequest(
            system_prompt=(
                "You are a career advisor specializing in the Indian tech market. "
                "Give actionable analysis with salary ranges in INR, tech hubs and top companies."
            ),
            user_prompt=f"Analyze the career path: {career}\n\n{json_instruction(RESPONSE_EXAMPLE)}",
            temperature=0.7,
            json_shape=JSON_OBJECT,
            label=self.feature_id,
        )

    def _postprocess(self, payload: Any, inputs: Dict[str, Any]) -> Any:
        if not isinstance(payload, dict):
            return payload
        payload.setdefault("career", clean_input(inputs["career_path"], max_chars=200))
        for key in ("alternatives", "requiredSkills", "topCompanies"):
            payload[key] = safe_list(payload, key)
        return payload
