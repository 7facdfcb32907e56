"""Knowledge-base loading from a JSON document list."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from support_responder.types import Document


def load_documents(path: str | Path) -> list[Document]:
    """Load documents from a JSON list of `{"content": ...}` objects.

    Keys other than `content` (title, id, ...) are kept as metadata. Order in
    the file is preserved and later decides ranking tie-breaks.
    """

    file_path = Path(path)
    payload: Any = json.loads(file_path.read_text(encoding="utf-8"))
    if not isinstance(payload, list):
        raise ValueError(f"Knowledge base must be a JSON list: {file_path}")

    documents: list[Document] = []
    for position, item in enumerate(payload):
        if not isinstance(item, dict) or not isinstance(item.get("content"), str):
            raise ValueError(f"Entry {position} in {file_path} has no string 'content'")
        metadata = {key: value for key, value in item.items() if key != "content"}
        documents.append(Document(content=item["content"], metadata=metadata))
    return documents
