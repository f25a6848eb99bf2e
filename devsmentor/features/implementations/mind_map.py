"""Mind Map Builder - categorised concept graph for a technical topic (Pro only)."""

from typing import Any, Dict

from devsmentor.features.models import JSON_OBJECT, CompletionRequest
from devsmentor.features.prompt_helpers import clean_input, json_instruction, safe_list
from devsmentor.features.protocols import BaseCareerFeature

RESPONSE_EXAMPLE = {
    "centralTopic": "Topic",
    "nodes": [
        {"id": "1", "label": "Concept Name", "category": "Category Name", "description": "Short note"}
    ],
    "connections": [{"from": "1", "to": "2"}],
}


class MindMapBuilder(BaseCareerFeature):
    def __init__(self, gate: Any, dispatcher: Any, **options: Any) -> None:
        super().__init__(
            feature_id="mind_map",
            gate_feature="mind_maps",
            display_name="Mind Map Builder",
            gate=gate,
            dispatcher=dispatcher,
            **options,
        )

    def required_inputs(self) -> tuple:
        return ("topic",)

    def _build_request(self, **inputs: Any) -> CompletionRequest:
        topic = clean_input(inputs["topic"], max_chars=200)
        return CompletionRequest(
            system_prompt="You create well-organized, categorized mind maps for technical topics.",
            user_prompt=(
                f"Create a detailed mind map for: {topic}\n\n"
                f"{json_instruction(RESPONSE_EXAMPLE)}"
            ),
            temperature=0.7,
            json_shape=JSON_OBJECT,
            label=self.feature_id,
        )

    def _postprocess(self, payload: Any, inputs: Dict[str, Any]) -> Any:
        nodes = [n for n in safe_list(payload, "nodes") if isinstance(n, dict) and "id" in n]
        node_ids = {str(n["id"]) for n in nodes}
        # Connections must reference nodes that survived filtering
        connections = [
            c for c in safe_list(payload, "connections")
            if isinstance(c, dict)
            and str(c.get("from")) in node_ids
            and str(c.get("to")) in node_ids
        ]
        central = payload.get("centralTopic") if isinstance(payload, dict) else None
        return {
            "centralTopic": central or clean_input(inputs["topic"], max_chars=200),
            "nodes": nodes,
            "connections": connections,
        }
