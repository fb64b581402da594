import os

from dotenv import load_dotenv
from langchain_community.embeddings import JinaEmbeddings
from langchain_google_genai import ChatGoogleGenerativeAI, GoogleGenerativeAIEmbeddings
from langchain_groq import ChatGroq

from doc_chat.exception import ConfigurationError
from doc_chat.logger import GLOBAL_LOGGER as log
from doc_chat.utils.config_loader import load_config

# Environment variable holding the key for each provider
PROVIDER_KEYS = {
    "jina": "JINA_API_KEY",
    "groq": "GROQ_API_KEY",
    "google": "GOOGLE_API_KEY",
}


def required_keys(config: dict) -> list[str]:
    """API keys needed by the providers named in the config."""
    providers = {config.get("embedding_model", {}).get("provider", "jina")}
    for role_cfg in (config.get("llm") or {}).values():
        providers.add(role_cfg.get("provider", "groq"))
    return sorted(PROVIDER_KEYS[p] for p in providers if p in PROVIDER_KEYS)


class ApiKeyManager:
    def __init__(self, required: list[str]):
        load_dotenv()
        self.required = required
        self.keys = {}

        for k in self.required:
            if val := os.getenv(k):
                self.keys[k] = val
                log.info("Loaded %s from env", k)
            else:
                log.error("Missing required API key: %s", k)

        missing = [k for k in self.required if k not in self.keys]
        if missing:
            raise ConfigurationError(f"Missing API keys: {', '.join(missing)}")

    def get(self, key: str) -> str:
        return self.keys[key]

    @staticmethod
    def status(keys: list[str]) -> dict[str, str]:
        """Presence of each key, never the value."""
        load_dotenv()
        return {k: "present" if os.getenv(k) else "missing" for k in keys}


class ModelLoader:
    """
    Responsible for:
    - Loading the embedding model
    - Loading the chat LLM for a role ("rag", "summary")
    """

    def __init__(self, config: dict | None = None):
        self.config = config if config is not None else load_config()
        log.info("YAML config loaded | keys=%s", list(self.config.keys()))

        self.api_key_mgr = ApiKeyManager(required_keys(self.config))
        self.api_keys = self.api_key_mgr.keys

    def load_embeddings(self):
        emb_cfg = self.config["embedding_model"]
        provider = emb_cfg.get("provider", "jina")
        model_name = emb_cfg["model_name"]

        log.info("Loading embedding model | provider=%s | model=%s", provider, model_name)

        if provider == "jina":
            return JinaEmbeddings(
                jina_api_key=self.api_keys.get("JINA_API_KEY"),
                model_name=model_name,
            )

        if provider == "google":
            return GoogleGenerativeAIEmbeddings(
                model=model_name, google_api_key=self.api_keys.get("GOOGLE_API_KEY")
            )

        raise ConfigurationError(f"Unsupported embedding provider {provider}")

    def load_llm(self, role: str):
        """
        Load and return the configured LLM for a role.
        """
        if role not in self.config["llm"]:
            log.error("LLM role not found in config | role=%s", role)
            raise ConfigurationError(f"LLM role '{role}' not found in config")

        llm_config = self.config["llm"][role]

        provider = llm_config["provider"]
        model = llm_config["model_name"]
        temp = llm_config.get("temperature", 0)
        max_t = llm_config.get("max_tokens")
        timeout = llm_config.get("timeout")

        log.info(
            "Loading LLM | role=%s | provider=%s | model=%s | timeout=%s",
            role,
            provider,
            model,
            timeout,
        )

        if provider == "google":
            return ChatGoogleGenerativeAI(
                model=model,
                google_api_key=self.api_keys.get("GOOGLE_API_KEY"),
                temperature=temp,
                max_output_tokens=max_t,
                timeout=timeout,
            )

        if provider == "groq":
            return ChatGroq(
                model=model,
                api_key=self.api_keys.get("GROQ_API_KEY"),
                temperature=temp,
                max_tokens=max_t,
                timeout=timeout,
            )

        raise ConfigurationError(f"Unsupported provider {provider}")
