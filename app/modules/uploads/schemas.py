from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class AvatarUploadResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    avatar_url: str
    path: str
