"""
Decision document generation (ADR and PRD) from a ready planning session.
Writing the document to disk is left to the caller.
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from datetime import date
from typing import Dict, List, Optional

from sessions import slugify

from .executor import ModelClient
from .models import DecisionDocument, SessionRecord, WorkflowKind, user_message
from .prompts import format_transcript, generation_request, generation_system_prompt
from .readiness import strip_code_fences

logger = logging.getLogger(__name__)

_ADR_TITLE_RE = re.compile(r"^#\s*ADR:\s*\d+\s*-\s*(.+)$", re.MULTILINE)
_ANY_HEADER_RE = re.compile(r"^#\s+(.+)$", re.MULTILINE)
_IMPLEMENTATION_PLAN_RE = re.compile(r"^##\s*Implementation Plan\s*\n(.*?)(?=^##\s|\Z)", re.MULTILINE | re.DOTALL)

FALLBACK_PRD_SECTION = "Requirements"


def document_number(today: date) -> str:
    return f"{today:%Y%m%d}-001"


def document_filename(title: str, today: date, prefix: str = "") -> str:
    return f"{today:%Y-%m-%d}-{prefix}{slugify(title)}.md"


class DocumentGenerator(ABC):
    kind: WorkflowKind

    def __init__(self, model_client: ModelClient, temperature: Optional[float] = 0.7):
        self.model_client = model_client
        self.temperature = temperature

    async def _ask(self, record: SessionRecord) -> str:
        prompt = generation_request(
            record.feature_request, format_transcript(record.history), record.codebase_content, self.kind,
        )
        reply = await self.model_client.invoke(
            [user_message(prompt)], [],
            system_prompt=generation_system_prompt(self.kind),
            temperature=self.temperature,
        )
        return reply.content.strip()

    @abstractmethod
    async def generate(self, record: SessionRecord, today: Optional[date] = None) -> DecisionDocument:
        pass


class ADRGenerator(DocumentGenerator):
    kind = WorkflowKind.ADR

    @staticmethod
    def extract_title(content: str) -> str:
        m = _ADR_TITLE_RE.search(content)
        if m:
            return m.group(1).strip()
        m = _ANY_HEADER_RE.search(content)
        if m:
            return re.sub(r"^ADR:\s*", "", m.group(1).strip()) or "Untitled ADR"
        return "Untitled ADR"

    @staticmethod
    def extract_implementation_plan(content: str) -> str:
        m = _IMPLEMENTATION_PLAN_RE.search(content)
        return m.group(1).strip() if m else ""

    async def generate(self, record: SessionRecord, today: Optional[date] = None) -> DecisionDocument:
        today = today or date.today()
        content = await self._ask(record)
        title = self.extract_title(content)
        logger.info(f"ADR generated: '{title}' ({len(content)} chars)")
        return DecisionDocument(
            kind=self.kind.value,
            title=title,
            content=content,
            number=document_number(today),
            implementation_plan=self.extract_implementation_plan(content),
            filename=document_filename(title, today),
        )


class PRDGenerator(DocumentGenerator):
    kind = WorkflowKind.PRD

    @staticmethod
    def parse_prd(text: str, fallback_title: str) -> Dict[str, object]:
        """Decode {title, sections}; unusable output becomes one Requirements section."""
        try:
            data = json.loads(strip_code_fences(text))
        except json.JSONDecodeError as e:
            logger.warning(f"Failed to parse PRD response: {e}")
            data = None

        sections: List[Dict[str, str]] = []
        title = fallback_title
        if isinstance(data, dict):
            if isinstance(data.get("title"), str) and data["title"].strip():
                title = data["title"].strip()
            for section in data.get("sections") or []:
                if isinstance(section, dict) and isinstance(section.get("title"), str):
                    sections.append({"title": section["title"], "content": str(section.get("content", ""))})

        if not sections:
            sections = [{"title": FALLBACK_PRD_SECTION, "content": text.strip()}]
        return {"title": title, "sections": sections}

    @staticmethod
    def render(title: str, sections: List[Dict[str, str]]) -> str:
        parts = [f"# {title}"]
        for section in sections:
            parts.append(f"## {section['title']}\n\n{section['content'].strip()}")
        return "\n\n".join(parts) + "\n"

    async def generate(self, record: SessionRecord, today: Optional[date] = None) -> DecisionDocument:
        today = today or date.today()
        raw = await self._ask(record)
        prd = self.parse_prd(raw, fallback_title=record.feature_request.strip()[:80] or "Untitled PRD")
        title = str(prd["title"])
        sections = prd["sections"]
        logger.info(f"PRD generated: '{title}' with {len(sections)} section(s)")
        return DecisionDocument(
            kind=self.kind.value,
            title=title,
            content=self.render(title, sections),
            number=document_number(today),
            sections=sections,
            filename=document_filename(title, today, prefix="prd-"),
        )


def generator_for(workflow: WorkflowKind, model_client: ModelClient,
                  temperature: Optional[float] = 0.7) -> DocumentGenerator:
    cls = PRDGenerator if workflow == WorkflowKind.PRD else ADRGenerator
    return cls(model_client, temperature=temperature)
