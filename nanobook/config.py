from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # OpenRouter
    openrouter_api_key: str = ""
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    default_model: str = "google/gemini-2.5-flash"
    agent_model: str = ""  # optional override for the four research agents
    synthesis_model: str = ""  # optional override for the dossier synthesis call
    author_model: str = ""  # optional override for drafting

    # Retry / timeout policy
    llm_max_retries: int = 3
    llm_initial_delay_ms: int = 2000
    llm_timeout_ms: int = 30000
    llm_heavy_timeout_ms: int = 120000
    synthesis_timeout_ms: int = 60000

    # Research
    min_report_chars: int = 10
    default_case_study_count: int = 7

    # Images
    image_model_hierarchy: str = (
        "google/gemini-3-pro-image-preview,"
        "google/gemini-2.5-flash-image,"
        "black-forest-labs/flux.2-pro"
    )
    image_model_retries: int = 1
    image_download_timeout_s: float = 30.0
    default_visual_style: str = "Photorealistic, Gritty, Forensic, High Contrast"

    # App
    app_log_level: str = "INFO"
    noisy_log_level: str = "WARNING"
    log_dir: str = "logs"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def image_model_list(self) -> list[str]:
        return [m.strip() for m in self.image_model_hierarchy.split(",") if m.strip()]


settings = Settings()
