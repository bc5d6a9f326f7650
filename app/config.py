from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    forth_base_url: str = "https://api.forthcrm.com"
    forth_api_key: str = ""
    forth_client_id: str = ""
    forth_client_secret: str = ""
    forth_token_auto_refresh: bool = True
    shared_secret: str = ""
    convoso_auth_token: str = ""
    convoso_api_base: str = "https://api.convoso.com"
    log_level: str = "INFO"
