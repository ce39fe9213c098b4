"""Static provider configuration used to seed the registry at startup."""

from pathlib import Path
from typing import Optional

from pydantic import TypeAdapter

from app.polyroute.core.types import Provider

_CATALOG_ADAPTER = TypeAdapter(list[Provider])

# Registration order doubles as the final ranking tie-breaker.
DEFAULT_CATALOG: tuple[Provider, ...] = (
    Provider(
        id="openai-gpt4",
        name="OpenAI GPT-4",
        vendor="openai",
        model="gpt-4o",
        endpoint="https://api.openai.com/v1/chat/completions",
        task_types=("general", "coding", "analysis", "creative", "technical"),
        reliability=0.98,
        response_time_ms=2000.0,
        cost_per_token=0.00003,
        max_tokens=8192,
    ),
    Provider(
        id="claude",
        name="Claude",
        vendor="anthropic",
        model="claude-3-5-sonnet-latest",
        endpoint="https://api.anthropic.com/v1/chat/completions",
        task_types=("general", "analysis", "creative"),
        reliability=0.96,
        response_time_ms=1500.0,
        cost_per_token=0.000015,
        max_tokens=4096,
    ),
    Provider(
        id="openai-gpt35",
        name="OpenAI GPT-3.5",
        vendor="openai",
        model="gpt-3.5-turbo",
        endpoint="https://api.openai.com/v1/chat/completions",
        task_types=("general",),
        reliability=0.95,
        response_time_ms=1000.0,
        cost_per_token=0.000002,
        max_tokens=4096,
    ),
    Provider(
        id="deepseek",
        name="DeepSeek",
        vendor="deepseek",
        model="deepseek-chat",
        endpoint="https://api.deepseek.com/v1/chat/completions",
        task_types=("general", "coding", "technical"),
        reliability=0.92,
        response_time_ms=3000.0,
        cost_per_token=0.000001,
        max_tokens=4096,
    ),
    Provider(
        id="groq",
        name="Groq",
        vendor="groq",
        model="mixtral-8x7b-32768",
        endpoint="https://api.groq.com/openai/v1/chat/completions",
        task_types=("general",),
        reliability=0.90,
        response_time_ms=500.0,
        cost_per_token=0.0000005,
        max_tokens=4096,
    ),
)


def load_catalog(path: Optional[str] = None) -> list[Provider]:
    """Return the provider catalog.

    Args:
        path: Optional JSON file holding a list of provider objects. When
            omitted, the built-in catalog is returned.

    Raises:
        ValueError: If the file is declared but missing.
        pydantic.ValidationError: If an entry is malformed.
    """
    if not path:
        return list(DEFAULT_CATALOG)

    catalog_file = Path(path)
    if not catalog_file.is_file():
        raise ValueError(f"CRITICAL: Provider catalog defined at '{path}' but not found.")
    return _CATALOG_ADAPTER.validate_json(catalog_file.read_bytes())
