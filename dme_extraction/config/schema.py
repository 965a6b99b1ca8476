from __future__ import annotations

from typing import Literal, Optional
from pydantic import BaseModel, Field
from pydantic.config import ConfigDict


class OpenAIConfig(BaseModel):
    model: str = "gpt-4o-mini"
    api_key: Optional[str] = None
    max_tokens: int = 2000
    temperature: float = 0.0
    timeout: int = 60


class OllamaConfig(BaseModel):
    base_url: str = "http://localhost:11434"
    model: str = "llama3.1"
    timeout: int = 120
    temperature: float = 0.0


class LLMConfig(BaseModel):
    default_provider: Literal["openai", "ollama"] = "openai"
    openai: OpenAIConfig = Field(default_factory=OpenAIConfig)
    ollama: OllamaConfig = Field(default_factory=OllamaConfig)


class ExtractionConfig(BaseModel):
    # auto: model when an OpenAI key is configured, rules otherwise
    strategy: Literal["rules", "model", "auto"] = "auto"


class ModelPromptConfig(BaseModel):
    include_cpap_fields: bool = True
    system_prompt: Optional[str] = None


class NotesConfig(BaseModel):
    folder: Optional[str] = None
    pattern: str = "*.txt"


class ApiConfig(BaseModel):
    url: Optional[str] = None
    timeout: float = 30.0


class LoggingConfig(BaseModel):
    level: str = "INFO"
    console: bool = True
    file: bool = False
    file_path: str = "logs/app.log"


class ConfigSchema(BaseModel):
    """Master configuration model reflecting merged YAML.

    Extra fields are allowed to avoid blocking incremental adoption.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    title: Optional[str] = None
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    model: ModelPromptConfig = Field(default_factory=ModelPromptConfig)
    notes: NotesConfig = Field(default_factory=NotesConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
