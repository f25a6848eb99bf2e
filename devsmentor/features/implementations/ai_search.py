"""AI Search - curated developer learning resources for a query."""

from typing import Any, Dict

from devsmentor.features.models import JSON_OBJECT, CompletionRequest
from devsmentor.features.prompt_helpers import clean_input, json_instruction, safe_list
from devsmentor.features.protocols import BaseCareerFeature

RESOURCE_TYPES = ("documentation", "tutorial", "video", "article", "code")

RESPONSE_EXAMPLE = {
    "results": [
        {
            "title": "Resource Title",
            "description": "What this resource covers",
            "url": "https://actual-url-to-resource.com",
            "type": "documentation|tutorial|video|article|code",
            "source": "Source name (e.g., MDN, React Docs, YouTube)",
        }
    ]
}


class AISearchEngine(BaseCareerFeature):
    def __init__(self, gate: Any, dispatcher: Any, **options: Any) -> None:
        super().__init__(
            feature_id="ai_search",
            gate_feature="ai_search",
            display_name="AI Search",
            gate=gate,
            dispatcher=dispatcher,
            **options,
        )

    def required_inputs(self) -> tuple:
        return ("query",)

    def _build_request(self, **inputs: Any) -> CompletionRequest:
        query = clean_input(inputs["query"], max_chars=300)
        return CompletionRequest(
            system_prompt=(
                "You are an AI search engine that finds the best free learning resources "
                "for developers, using real URLs from reputable sources."
            ),
            user_prompt=(
                f"Find 6-10 learning resources for: {query}\n\n"
                f"{json_instruction(RESPONSE_EXAMPLE)}"
            ),
            temperature=0.7,
            json_shape=JSON_OBJECT,
            label=self.feature_id,
        )

    def _postprocess(self, payload: Any, inputs: Dict[str, Any]) -> Any:
        results = []
        for item in safe_list(payload, "results"):
            # Drop entries without a usable link
            if not isinstance(item, dict) or not str(item.get("url", "")).startswith("http"):
                continue
            if item.get("type") not in RESOURCE_TYPES:
                item["type"] = "article"
            results.append(item)
        return {"results": results}
