"""Configuration loading and validation."""

import json
import os
from dataclasses import dataclass, field
from gemchat.exceptions import ConfigError, StartupConfigError


PROVIDERS = ("gemini", "openai", "azure")

DEFAULT_BASE_URLS = {
    "gemini": "https://generativelanguage.googleapis.com",
    "openai": "https://api.openai.com/v1",
    "azure": "",
}

API_KEY_ENV = {
    "gemini": "GEMINI_API_KEY",
    "openai": "OPENAI_API_KEY",
    "azure": "AZURE_OPENAI_API_KEY",
}

LANGSMITH_OTEL_ENDPOINT = "https://api.smith.langchain.com/otel/v1/traces"

GEMCHAT_HOME = os.path.join(os.path.expanduser("~"), ".gemchat")


@dataclass
class ModelConfig:
    """Configuration for the remote chat model."""
    provider: str = "gemini"
    model_name: str = "gemini-2.0-flash"
    base_url: str = DEFAULT_BASE_URLS["gemini"]
    api_key: str = ""
    api_version: str = "2023-03-15-preview"
    temperature: float = 0.7
    max_output_tokens: int = 2048


@dataclass
class ClientSettings:
    """HTTP timeouts for model API requests."""
    connect_timeout: float = 10.0
    read_timeout: float = 120.0


@dataclass
class ToolsConfig:
    """Configuration for the filesystem tools."""
    enabled: bool = True
    restrict_to_cwd: bool = False
    max_suggestions: int = 10


@dataclass
class HistoryConfig:
    """Configuration for the plain-text chat transcript."""
    enabled: bool = True
    directory: str = os.path.join(GEMCHAT_HOME, "history")
    fallback_directory: str = os.path.join(".gemchat", "history")


@dataclass
class ExtensionsConfig:
    """Configuration for extension toggles."""
    enabled_map: dict[str, bool] = field(default_factory=dict)


@dataclass
class TelemetryConfig:
    """Configuration for LangSmith tracing and local metrics."""
    tracing: bool = False
    langsmith_api_key: str = ""
    project: str = "gemchat"
    endpoint: str = LANGSMITH_OTEL_ENDPOINT
    service_name: str = "gemchat"
    metrics: bool = False
    log_dir: str = os.path.join(GEMCHAT_HOME, "metrics")


@dataclass
class ChatConfig:
    """Complete GemChat configuration."""
    model: ModelConfig = field(default_factory=ModelConfig)
    client: ClientSettings = field(default_factory=ClientSettings)
    tools: ToolsConfig = field(default_factory=ToolsConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    extensions: ExtensionsConfig = field(default_factory=ExtensionsConfig)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)
    prompt_profile: str = "default"
    debug: bool = False
    data_dir: str = GEMCHAT_HOME
    log_dir: str = os.path.join(GEMCHAT_HOME, "logs")


def load_config(config_path: str = "gemchat.json") -> ChatConfig:
    """Load configuration from a JSON file with defaults and environment overrides."""
    raw: dict = {}
    if config_path and os.path.exists(config_path):
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            raise ConfigError(f"Failed to load config from {config_path}: {e}")
        if not isinstance(raw, dict):
            raise ConfigError(f"Config file {config_path} must contain a JSON object")

    data_dir = raw.get("data_dir", GEMCHAT_HOME)
    if not isinstance(data_dir, str) or not data_dir.strip():
        raise ConfigError("data_dir must be a non-empty string")
    data_dir = os.path.expanduser(data_dir.strip())

    model = _load_model_settings(raw.get("model", {}))
    client = _load_client_settings(raw.get("client", {}))
    tools = _load_tools_settings(raw.get("tools", {}))
    history = _load_history_settings(raw.get("history", {}))
    extensions = _load_extensions_settings(raw.get("extensions", {}))
    telemetry = _load_telemetry_settings(raw.get("telemetry", {}), data_dir)

    debug = raw.get("debug", False)
    if not isinstance(debug, bool):
        raise ConfigError("debug must be a boolean")

    prompt_profile = raw.get("prompt_profile", "default")
    if not isinstance(prompt_profile, str) or not prompt_profile.strip():
        raise ConfigError("prompt_profile must be a non-empty string")

    log_dir = raw.get("log_dir", os.path.join(data_dir, "logs"))
    if not isinstance(log_dir, str) or not log_dir.strip():
        raise ConfigError("log_dir must be a non-empty string")

    config = ChatConfig(
        model=model,
        client=client,
        tools=tools,
        history=history,
        extensions=extensions,
        telemetry=telemetry,
        prompt_profile=prompt_profile.strip(),
        debug=debug,
        data_dir=data_dir,
        log_dir=log_dir,
    )
    _apply_env_overrides(config)
    return config


def apply_cli_overrides(config: ChatConfig, args) -> ChatConfig:
    """Merge parsed command-line flags over file and environment values."""
    if getattr(args, "model", None):
        config.model.model_name = args.model

    provider = getattr(args, "provider", None)
    if provider:
        if provider not in PROVIDERS:
            raise ConfigError(f"provider must be one of: {', '.join(PROVIDERS)}")
        if provider != config.model.provider:
            config.model.provider = provider
            config.model.base_url = _default_base_url(provider)
            config.model.api_key = os.getenv(API_KEY_ENV[provider], "")
            if provider == "azure":
                _apply_azure_env(config.model)

    if getattr(args, "key", None):
        config.model.api_key = args.key
    if getattr(args, "langsmith_key", None):
        config.telemetry.langsmith_api_key = args.langsmith_key
    if getattr(args, "tracing", False):
        config.telemetry.tracing = True
    if getattr(args, "no_history", False):
        config.history.enabled = False
    if getattr(args, "no_tools", False):
        config.tools.enabled = False
    if getattr(args, "debug", False):
        config.debug = True
    return config


def require_api_key(config: ChatConfig) -> str:
    """Return the model API key or raise when none is configured."""
    key = config.model.api_key.strip()
    if not key:
        env_name = API_KEY_ENV.get(config.model.provider, "GEMINI_API_KEY")
        raise StartupConfigError(
            f"Please provide {config.model.provider} API key via --key option "
            f"or {env_name} environment variable"
        )
    if config.model.provider == "azure" and not config.model.base_url:
        raise StartupConfigError(
            "Azure OpenAI requires AZURE_OPENAI_RESOURCE_NAME or model.base_url"
        )
    return key


def resolve_tracing(config: ChatConfig) -> str | None:
    """Disable tracing when no LangSmith key is present; return a warning if so."""
    if config.telemetry.tracing and not config.telemetry.langsmith_api_key.strip():
        config.telemetry.tracing = False
        return "Tracing enabled but no LangSmith API key provided. Tracing will be disabled."
    return None


def _apply_env_overrides(config: ChatConfig) -> None:
    model = config.model
    if not model.api_key:
        model.api_key = os.getenv(API_KEY_ENV[model.provider], "")
    if model.provider == "gemini":
        env_model = os.getenv("GEMINI_MODEL")
        if env_model:
            model.model_name = env_model
    if model.provider == "azure":
        _apply_azure_env(model)

    langsmith_key = os.getenv("LANGSMITH_API_KEY")
    if langsmith_key and not config.telemetry.langsmith_api_key:
        config.telemetry.langsmith_api_key = langsmith_key
    langsmith_project = os.getenv("LANGSMITH_PROJECT")
    if langsmith_project:
        config.telemetry.project = langsmith_project

    history_dir = os.getenv("GEMCHAT_HISTORY_DIR")
    if history_dir:
        config.history.directory = history_dir


def _apply_azure_env(model: ModelConfig) -> None:
    resource = os.getenv("AZURE_OPENAI_RESOURCE_NAME")
    if resource and not model.base_url:
        model.base_url = (
            f"https://{resource}.openai.azure.com/openai/deployments/{model.model_name}"
        )
    api_version = os.getenv("AZURE_OPENAI_API_VERSION")
    if api_version:
        model.api_version = api_version


def _default_base_url(provider: str) -> str:
    return DEFAULT_BASE_URLS.get(provider, "")


def _load_model_settings(raw: dict) -> ModelConfig:
    """Parse and validate model settings."""
    if not isinstance(raw, dict):
        raise ConfigError("model must be an object")

    provider = raw.get("provider", "gemini")
    if provider not in PROVIDERS:
        raise ConfigError(f"model.provider must be one of: {', '.join(PROVIDERS)}")

    default_name = "gemini-2.0-flash" if provider == "gemini" else "gpt-3.5-turbo"
    model_name = raw.get("model_name", default_name)
    if not isinstance(model_name, str) or not model_name.strip():
        raise ConfigError("model.model_name must be a non-empty string")

    base_url = raw.get("base_url", _default_base_url(provider))
    if not isinstance(base_url, str):
        raise ConfigError("model.base_url must be a string")

    api_key = raw.get("api_key", "")
    if not isinstance(api_key, str):
        raise ConfigError("model.api_key must be a string")

    api_version = raw.get("api_version", "2023-03-15-preview")
    if not isinstance(api_version, str) or not api_version.strip():
        raise ConfigError("model.api_version must be a non-empty string")

    temperature = _coerce_float(raw.get("temperature", 0.7), "model.temperature", 0.0)
    max_output_tokens = _coerce_int(
        raw.get("max_output_tokens", 2048), "model.max_output_tokens", 1
    )

    return ModelConfig(
        provider=provider,
        model_name=model_name.strip(),
        base_url=base_url.strip().rstrip("/"),
        api_key=api_key.strip(),
        api_version=api_version.strip(),
        temperature=temperature,
        max_output_tokens=max_output_tokens,
    )


def _load_client_settings(raw: dict) -> ClientSettings:
    """Parse and validate HTTP client settings."""
    if not isinstance(raw, dict):
        raise ConfigError("client must be an object")
    return ClientSettings(
        connect_timeout=_coerce_float(raw.get("connect_timeout", 10.0), "client.connect_timeout", 0.1),
        read_timeout=_coerce_float(raw.get("read_timeout", 120.0), "client.read_timeout", 0.1),
    )


def _load_tools_settings(raw: dict) -> ToolsConfig:
    """Parse and validate filesystem tool settings."""
    if not isinstance(raw, dict):
        raise ConfigError("tools must be an object")

    enabled = raw.get("enabled", True)
    if not isinstance(enabled, bool):
        raise ConfigError("tools.enabled must be a boolean")

    restrict_to_cwd = raw.get("restrict_to_cwd", False)
    if not isinstance(restrict_to_cwd, bool):
        raise ConfigError("tools.restrict_to_cwd must be a boolean")

    max_suggestions = _coerce_int(raw.get("max_suggestions", 10), "tools.max_suggestions", 0)

    return ToolsConfig(
        enabled=enabled,
        restrict_to_cwd=restrict_to_cwd,
        max_suggestions=max_suggestions,
    )


def _load_history_settings(raw: dict) -> HistoryConfig:
    """Parse and validate chat history settings."""
    if not isinstance(raw, dict):
        raise ConfigError("history must be an object")

    defaults = HistoryConfig()
    enabled = raw.get("enabled", True)
    if not isinstance(enabled, bool):
        raise ConfigError("history.enabled must be a boolean")

    directory = raw.get("directory", defaults.directory)
    if not isinstance(directory, str) or not directory.strip():
        raise ConfigError("history.directory must be a non-empty string")

    fallback_directory = raw.get("fallback_directory", defaults.fallback_directory)
    if not isinstance(fallback_directory, str) or not fallback_directory.strip():
        raise ConfigError("history.fallback_directory must be a non-empty string")

    return HistoryConfig(
        enabled=enabled,
        directory=os.path.expanduser(directory.strip()),
        fallback_directory=fallback_directory.strip(),
    )


def _load_extensions_settings(raw: dict) -> ExtensionsConfig:
    """Parse and validate extension toggle settings."""
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError("extensions must be an object mapping extension name to boolean")
    enabled_map: dict[str, bool] = {}
    for key, value in raw.items():
        if not isinstance(key, str) or not key.strip():
            raise ConfigError("extensions keys must be non-empty strings")
        if not isinstance(value, bool):
            raise ConfigError(f"extensions.{key} must be a boolean")
        enabled_map[key.strip()] = value
    return ExtensionsConfig(enabled_map=enabled_map)


def _load_telemetry_settings(raw: dict, data_dir: str) -> TelemetryConfig:
    """Parse and validate tracing and metrics settings."""
    if not isinstance(raw, dict):
        raise ConfigError("telemetry must be an object")

    tracing = raw.get("tracing", False)
    if not isinstance(tracing, bool):
        raise ConfigError("telemetry.tracing must be a boolean")

    langsmith_api_key = raw.get("langsmith_api_key", "")
    if not isinstance(langsmith_api_key, str):
        raise ConfigError("telemetry.langsmith_api_key must be a string")

    project = raw.get("project", "gemchat")
    if not isinstance(project, str) or not project.strip():
        raise ConfigError("telemetry.project must be a non-empty string")

    endpoint = raw.get("endpoint", LANGSMITH_OTEL_ENDPOINT)
    if not isinstance(endpoint, str) or not endpoint.strip():
        raise ConfigError("telemetry.endpoint must be a non-empty string")

    service_name = raw.get("service_name", "gemchat")
    if not isinstance(service_name, str) or not service_name.strip():
        raise ConfigError("telemetry.service_name must be a non-empty string")

    metrics = raw.get("metrics", False)
    if not isinstance(metrics, bool):
        raise ConfigError("telemetry.metrics must be a boolean")

    log_dir = raw.get("log_dir", os.path.join(data_dir, "metrics"))
    if not isinstance(log_dir, str) or not log_dir.strip():
        raise ConfigError("telemetry.log_dir must be a non-empty string")

    return TelemetryConfig(
        tracing=tracing,
        langsmith_api_key=langsmith_api_key.strip(),
        project=project.strip(),
        endpoint=endpoint.strip(),
        service_name=service_name.strip(),
        metrics=metrics,
        log_dir=log_dir,
    )


def _coerce_float(value: object, name: str, min_value: float) -> float:
    """Coerce config value to float with basic validation."""
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be a number")

    if value < min_value:
        raise ConfigError(f"{name} must be >= {min_value}")
    return value


def _coerce_int(value: object, name: str, min_value: int) -> int:
    """Coerce config value to int with basic validation."""
    try:
        value = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer")

    if value < min_value:
        raise ConfigError(f"{name} must be >= {min_value}")
    return value
