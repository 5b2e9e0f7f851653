from pydantic import BaseModel, ConfigDict, Field


class ModelRecord(BaseModel):
    """
    A model listed by the marketplace under /blockchain/models.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(..., description="Marketplace model identifier")
    name: str = Field(..., description="Human-readable model name")
    endpoint: str = Field(default="", description="Provider endpoint, if advertised")
    description: str = Field(default="")


class ModelsResponse(BaseModel):
    models: list[ModelRecord] = Field(default_factory=list)


class CachedModel(BaseModel):
    model: ModelRecord
    created_at: float = Field(..., description="Cache insertion time (epoch seconds)")


__all__ = ["ModelRecord", "ModelsResponse", "CachedModel"]
