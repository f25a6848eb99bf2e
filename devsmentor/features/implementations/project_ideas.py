"""Project Ideas - portfolio project specifications for a topic."""

from typing import Any, Dict

from devsmentor.features.models import JSON_OBJECT, CompletionRequest
from devsmentor.features.prompt_helpers import clean_input, json_instruction, safe_list
from devsmentor.features.protocols import BaseCareerFeature

DIFFICULTIES = ("Beginner", "Medium", "Advanced")

RESPONSE_EXAMPLE = {
    "projects": [
        {
            "name": "Project Name",
            "difficulty": "Beginner|Medium|Advanced",
            "skills": ["Skill1", "Skill2"],
            "description": "2-3 sentence project overview",
            "category": "Web Development|AI/ML|Mobile|DevOps|Cybersecurity|Data Science",
            "techStack": ["React", "Node.js"],
            "apis": ["Stripe API"],
            "features": ["Feature 1", "Feature 2"],
            "estimatedTime": "2-3 weeks",
            "learningOutcomes": ["Outcome 1"],
            "resources": [{"title": "Official Documentation", "url": "https://docs.example.com"}],
        }
    ]
}


class ProjectIdeaGenerator(BaseCareerFeature):
    """Generates six project ideas, mixed across difficulty levels."""

    def __init__(self, gate: Any, dispatcher: Any, **options: Any) -> None:
        super().__init__(
            feature_id="project_ideas",
            gate_feature="project_generation",
            display_name="Project Ideas",
            gate=gate,
            dispatcher=dispatcher,
            **options,
        )

    def required_inputs(self) -> tuple:
        return ("topic",)

    def _build_request(self, **inputs: Any) -> CompletionRequest:
        topic = clean_input(inputs["topic"], max_chars=200)
        category = clean_input(inputs.get("category") or "All", max_chars=50)
        focus = (
            f"Category focus: {category}"
            if category != "All"
            else "Mix of different categories"
        )
        return CompletionRequest(
            system_prompt=(
                "You are a senior software engineer who writes detailed project ideas "
                "with tech stacks, APIs, features and learning resources."
            ),
            user_prompt=(
                f"Generate 6 project ideas for: {topic}\n{focus}\n"
                "Use 2 Beginner, 2 Medium and 2 Advanced projects.\n\n"
                f"{json_instruction(RESPONSE_EXAMPLE)}"
            ),
            temperature=0.8,
            json_shape=JSON_OBJECT,
            label=self.feature_id,
        )

    def _postprocess(self, payload: Any, inputs: Dict[str, Any]) -> Any:
        projects = [p for p in safe_list(payload, "projects") if isinstance(p, dict)]
        for project in projects:
            if project.get("difficulty") not in DIFFICULTIES:
                project["difficulty"] = "Medium"
        return {"projects": projects}
