"""Target-connection descriptor delivered through the config channel."""
from pydantic import BaseModel, ConfigDict, Field


class TargetConfig(BaseModel):
    """Spanner project/instance the migration targets."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    gcp_project_id: str = Field(default="", alias="GCPProjectID")
    spanner_instance_id: str = Field(default="", alias="SpannerInstanceID")

    @property
    def is_configured(self) -> bool:
        return bool(self.gcp_project_id and self.spanner_instance_id)


EMPTY_TARGET_CONFIG = TargetConfig()
