"""Retrieval-augmented chat over the bank's product documents.

Documents are read with ``SimpleDirectoryReader``, indexed once in a
``VectorStoreIndex`` on first use, and each question is answered by a fresh
``ContextChatEngine`` over that shared index.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from llama_index.core import Document, SimpleDirectoryReader, VectorStoreIndex
from llama_index.core.embeddings import BaseEmbedding
from llama_index.core.chat_engine import ContextChatEngine
from llama_index.core.llms import LLM
from llama_index.core.node_parser import SentenceSplitter
from llama_index.core.schema import NodeWithScore
from llama_index.embeddings.openai import OpenAIEmbedding
from llama_index.llms.openai import OpenAI

from simbank.core.config import Settings, settings

logger = logging.getLogger(__name__)

DOC_SUFFIXES = [".md", ".txt"]

SYSTEM_PROMPT = (
    "You are the assistant of a simulated retail bank. Answer the customer's "
    "question using the context provided when it is relevant. If the context does "
    "not cover the question, say so briefly instead of inventing policy."
)


@dataclass(frozen=True)
class ChatSettings:
    model: str
    embed_model: str = "text-embedding-3-small"
    api_key: str | None = None
    base_url: str | None = None
    documents_dir: str | None = None
    top_k: int = 3
    max_tokens: int = 512
    chunk_size: int = 512
    chunk_overlap: int = 32

    @classmethod
    def from_settings(cls, st: Settings) -> "ChatSettings":
        return cls(
            model=st.openai_model,
            embed_model=st.openai_embed_model,
            api_key=st.openai_api_key,
            base_url=st.openai_base_url,
            documents_dir=st.chat_documents_dir,
            top_k=st.chat_top_k,
            max_tokens=st.chat_max_tokens,
            chunk_size=st.chat_chunk_size,
            chunk_overlap=st.chat_chunk_overlap,
        )


def load_documents(documents_dir: str | None) -> list[Document]:
    if not documents_dir:
        return []
    root = Path(documents_dir)
    if not root.is_dir() or not any(p.suffix.lower() in DOC_SUFFIXES for p in root.rglob("*")):
        logger.warning("no chat documents under %s; answering without context", root)
        return []
    return SimpleDirectoryReader(input_dir=str(root), required_exts=DOC_SUFFIXES, recursive=True).load_data()


class ChatEngine:
    def __init__(
        self,
        config: ChatSettings,
        llm: LLM | None = None,
        embed_model: BaseEmbedding | None = None,
        documents: list[Document] | None = None,
    ):
        self.config = config
        self._llm = llm
        self._embed_model = embed_model
        self._documents = documents
        self._index: VectorStoreIndex | None = None
        self._lock = threading.Lock()

    @property
    def llm(self) -> LLM:
        if self._llm is None:
            self._llm = OpenAI(
                model=self.config.model,
                api_key=self.config.api_key,
                api_base=self.config.base_url,
                max_tokens=self.config.max_tokens,
            )
        return self._llm

    @property
    def embed_model(self) -> BaseEmbedding:
        if self._embed_model is None:
            self._embed_model = OpenAIEmbedding(
                model=self.config.embed_model,
                api_key=self.config.api_key,
                api_base=self.config.base_url,
            )
        return self._embed_model

    @property
    def index(self) -> VectorStoreIndex:
        with self._lock:
            if self._index is None:
                docs = self._documents
                if docs is None:
                    docs = load_documents(self.config.documents_dir)
                self._index = VectorStoreIndex.from_documents(
                    docs,
                    embed_model=self.embed_model,
                    transformations=[
                        SentenceSplitter(
                            chunk_size=self.config.chunk_size,
                            chunk_overlap=self.config.chunk_overlap,
                        )
                    ],
                )
                logger.info("chat index built from %d documents", len(docs))
            return self._index

    def retrieve(self, message: str) -> list[NodeWithScore]:
        return self.index.as_retriever(similarity_top_k=self.config.top_k).retrieve(message)

    def chat(self, message: str) -> str:
        engine = ContextChatEngine.from_defaults(
            retriever=self.index.as_retriever(similarity_top_k=self.config.top_k),
            llm=self.llm,
            system_prompt=SYSTEM_PROMPT,
        )
        answer = engine.chat(message)
        return answer.response or ""


@lru_cache(maxsize=1)
def get_chat_engine() -> ChatEngine:
    return ChatEngine(ChatSettings.from_settings(settings))
