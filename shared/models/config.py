from pydantic import BaseModel, Field


class EnvConfig(BaseModel):
    """
    Represents a single configuration parameter required by a client.

    Attributes:
        env_key (str): The raw key name; the client prefixes it (e.g. "API_KEY" → "LLM_OPENAI_API_KEY").
        val_type (str): The expected value type: "string", "number", "bool" or "list".
        default (str | int | float | bool | list | None): Fallback value. None marks the key as required.
    """

    env_key: str
    val_type: str = "string"
    default: str | int | float | bool | list | None = None


class ChunkingConfig(BaseModel):
    """
    Chunking parameters for one ingestion run.

    max_chunk_chars bounds the body of a structured section (markdown or
    heuristic heading). unstructured_max_chunk_chars bounds the windows used
    when no structure was detected at all. overlap_ratio is the share of a
    window repeated at the start of the next one.
    """

    max_chunk_chars: int = Field(default=1000, gt=0)
    unstructured_max_chunk_chars: int = Field(default=3000, gt=0)
    overlap_ratio: float = Field(default=0.1, ge=0.0, lt=0.5)

