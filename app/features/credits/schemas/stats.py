from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class UserStatsResponse(BaseModel):
    """Dashboard aggregates for the calling user."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total_scans: int
    avg_score: int
    critical_issues: int
    scan_credits: int
    plan: str
