from pydantic_settings import BaseSettings


class Settings(BaseSettings):

    chroma_host: str = "localhost"
    chroma_port: int = 8001
    chroma_collection: str = "market_paragraphs"
    # "chroma" or "memory"
    vector_store: str = "chroma"

    embedding_model: str = "BAAI/bge-m3"
    embedding_dim: int = 1024

    image_embedding_model: str = "clip-ViT-B-32"
    image_embedding_dim: int = 512
    image_embedding_enabled: bool = True

    reranker_model: str = "BAAI/bge-reranker-v2-m3"
    reranker_enabled: bool = True

    # Image captions (OpenAI-compatible vision endpoint)
    caption_enabled: bool = False
    caption_base_url: str = "http://localhost:11434/v1"
    caption_api_key: str = "ollama"
    caption_model: str = "qwen2.5vl:7b"

    docs_path: str = "./docs"
    image_storage_root: str = "./data"
    ingest_workers: int = 4

    # Approximate tokens (len(text) / 4)
    chunk_max_tokens_per_line: int = 200
    chunk_max_tokens_per_paragraph: int = 400
    chunk_overlap_tokens: int = 40

    rag_top_k: int = 8
    rag_rewrite_candidates: int = 3
    rag_fusion_text_weight: float = 0.7
    rag_fusion_image_weight: float = 0.3

    class Config:
        env_file = ".env"
        extra = "ignore"


settings = Settings()
