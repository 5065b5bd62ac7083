from pydantic import BaseModel
from typing import Dict

class ModerationSummary(BaseModel):
    project_id: str
    total_testimonials: int
    breakdown: Dict[str, int]
    verified_authors: int
