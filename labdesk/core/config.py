"""
Configuration management for LabDesk
"""

from pathlib import Path
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Main configuration class combining all settings"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application settings
    app_name: str = "LabDesk"
    app_version: str = "1.0.0"
    environment: str = "development"

    # Backend API
    api_url: str = "http://localhost:5000/api"

    # Session persistence
    session_token_file: str = "~/.labdesk/token"

    # Logging configuration
    log_level: str = "INFO"
    log_file: str = "logs/labdesk.log"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Report settings
    lab_name: str = "CLINICAL LABORATORY"
    report_title: str = "Results Report"
    report_output_dir: str = "reports"

    # PDF layout, millimetres measured from the top of the page
    report_page_break_mm: float = 250
    report_top_margin_mm: float = 20
    report_footer_mm: float = 290
    report_row_height_mm: float = 7

    @field_validator('environment')
    @classmethod
    def validate_environment(cls, v):
        if v not in ['development', 'testing', 'production']:
            raise ValueError('Environment must be development, testing, or production')
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        v = v.upper()
        if v not in ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']:
            raise ValueError(f'Unknown log level: {v}')
        return v

    @property
    def token_path(self) -> Path:
        return Path(self.session_token_file).expanduser()

    def create_log_directory(self):
        """Create log directory if it doesn't exist"""
        log_dir = Path(self.log_file).parent
        log_dir.mkdir(parents=True, exist_ok=True)

    def create_report_directory(self) -> Path:
        """Create report output directory if it doesn't exist"""
        report_dir = Path(self.report_output_dir)
        report_dir.mkdir(parents=True, exist_ok=True)
        return report_dir


# Global settings instance
settings = Settings()
