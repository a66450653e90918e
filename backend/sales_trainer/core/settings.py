from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Dialogue generation (OpenAI-compatible chat API)
    openai_api_key: str = ""
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o-mini"
    llm_max_retries: int = 1
    llm_timeout_seconds: int = 20
    llm_temperature: float = 0.7
    llm_max_tokens: int = 400

    # Recent-history window sent to the generator
    history_limit: int = 6

    # Ground-truth vehicle record used for fact checks and prompts
    ground_truth_path: str = "data/vehicle.json"

    # Client profile used when a session is started without one
    default_profile: str = "normal"

    # Scripted offline customer instead of the LLM (evals, tests, local dev)
    force_offline: bool = False

    # ASGI server (sales-trainer-api entry point)
    host: str = "127.0.0.1"
    port: int = 8000

    log_level: str = "INFO"

    cors_origins: list[str] = ["http://localhost:5173"]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
