from pydantic import BaseModel, ValidationError

class SettingsSchema(BaseModel):
    user_id: str = "local"
    remote_url: str = ""
    remote_api_key: str | bool = ""
    sync_enabled: bool = True
    sync_background: bool = True
    outbox_limit: int = 500
    adhoc_default_sets: int = 3
    progression_points: int = 12
    volume_weeks: int = 4
    log_level: str = "INFO"
    migrated_v1: bool = False

def validate_settings(data: dict) -> None:
    try:
        SettingsSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))
