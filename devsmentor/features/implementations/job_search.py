"""Job Search - realistic tech job listings with LinkedIn search links."""

from typing import Any, Dict, List
from urllib.parse import quote

from devsmentor.features.models import CompletionRequest
from devsmentor.features.prompt_helpers import clean_input, json_instruction
from devsmentor.features.protocols import BaseCareerFeature

LINKEDIN_PREFIX = "https://www.linkedin.com"
LINKEDIN_SEARCH = "https://www.linkedin.com/jobs/search/?keywords={keywords}&location={location}"

RESPONSE_EXAMPLE = {
    "jobs": [
        {
            "title": "Job Title",
            "company": "Company Name",
            "location": "City, India",
            "type": "Full-time/Internship",
            "salary": "INR X - Y LPA",
            "posted": "X days ago",
            "skills": ["Skill1", "Skill2"],
            "linkedInUrl": "https://www.linkedin.com/jobs/search/?keywords=Job%20Title&location=City",
            "isInternship": False,
            "experience": "0-2 years",
            "description": "Brief job description",
        }
    ]
}


def _encode(value: str) -> str:
    # Same escaping as JavaScript's encodeURIComponent
    return quote(value, safe="-_.!~*'()")


def linkedin_search_url(job: Dict[str, Any], default_location: str = "India") -> str:
    """Build a LinkedIn job-search URL from a listing's title, company and location."""
    keywords = f"{job.get('title', '')} {job.get('company', '')}".strip()
    location = job.get("location") or default_location
    return LINKEDIN_SEARCH.format(keywords=_encode(keywords), location=_encode(str(location)))


class JobFinder(BaseCareerFeature):
    """Lists 8-10 jobs and internships for a search query."""

    def __init__(self, gate: Any, dispatcher: Any, **options: Any) -> None:
        super().__init__(
            feature_id="job_search",
            gate_feature="job_search",
            display_name="Job Search",
            gate=gate,
            dispatcher=dispatcher,
            **options,
        )

    def required_inputs(self) -> tuple:
        return ("query",)

    def _build_request(self, **inputs: Any) -> CompletionRequest:
        query = clean_input(inputs["query"], max_chars=200)
        location = clean_input(inputs.get("location") or "India", max_chars=100)
        return CompletionRequest(
            system_prompt=(
                "You are a job search assistant for tech jobs in India. Generate realistic "
                "listings from real companies, including a few internships."
            ),
            user_prompt=(
                f"Generate 8-10 job listings for: {query}\nPreferred location: {location}\n\n"
                f"{json_instruction(RESPONSE_EXAMPLE)}"
            ),
            temperature=0.8,
            # Some models answer with a bare array of jobs
            json_shape=None,
            label=self.feature_id,
        )

    def _postprocess(self, payload: Any, inputs: Dict[str, Any]) -> Any:
        if isinstance(payload, list):
            jobs = payload
        elif isinstance(payload, dict) and isinstance(payload.get("jobs"), list):
            jobs = payload["jobs"]
        else:
            jobs = []

        default_location = clean_input(inputs.get("location") or "India", max_chars=100)
        repaired: List[Dict[str, Any]] = []
        for job in jobs:
            if not isinstance(job, dict):
                continue
            url = job.get("linkedInUrl")
            if not isinstance(url, str) or not url.startswith(LINKEDIN_PREFIX):
                job["linkedInUrl"] = linkedin_search_url(job, default_location)
            repaired.append(job)
        return {"jobs": repaired}
