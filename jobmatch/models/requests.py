from pydantic import Field

from jobmatch.models.schemas import CamelModel


class DetailedMatchRequest(CamelModel):
    """Body of the detailed-match call; the vector score comes from the listing"""
    vector_score: float = Field(default=0, ge=0, le=100, description="Vector similarity as a 0-100 percentage")
